from __future__ import annotations

import re

HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*#*\s*$")
BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.*\S)\s*$")
# "**Key:** value", "**Key**: value", optionally as a list item
KEY_VALUE_RE = re.compile(r"^\s*(?:[-*+]\s+)?\*\*\s*([^*:]+?)\s*(?::\s*\*\*|\*\*\s*:)\s*(.*?)\s*$")
LEADING_SEPARATOR_RE = re.compile(r"^\s*(?:[—–:|]|-{1,2})\s*")
INNER_SEPARATOR_RE = re.compile(r"\s*[—–]\s*|\s+-{1,2}\s+")
RULE_RE = re.compile(r"^\s*([-*_])(?:\s*\1){2,}\s*$")
LINK_RE = re.compile(r"\[([^\]]*)\]\(([^)\s]+)[^)]*\)")
EMPHASIS_RE = re.compile(r"(\*\*|__|`)")


def heading(line: str) -> tuple[int, str] | None:
    m = HEADING_RE.match(line)
    if not m:
        return None
    return len(m.group(1)), m.group(2).strip()


def bullet(line: str) -> str | None:
    m = BULLET_RE.match(line)
    return m.group(1) if m else None


def key_value(line: str) -> tuple[str, str] | None:
    m = KEY_VALUE_RE.match(line)
    if not m:
        return None
    return m.group(1).strip().lower(), m.group(2).strip()


def strip_emphasis(text: str) -> str:
    return EMPHASIS_RE.sub("", text).strip()


def strip_leading_separator(text: str) -> str:
    return LEADING_SEPARATOR_RE.sub("", text, count=1).strip()


def split_description(text: str) -> tuple[str, str]:
    parts = INNER_SEPARATOR_RE.split(text, maxsplit=1)
    if len(parts) == 1:
        return text.strip(), ""
    return parts[0].strip(), parts[1].strip()


def normalize_heading(text: str) -> str:
    cleaned = re.sub(r"[^a-z0-9 ]+", " ", strip_emphasis(text).lower())
    return re.sub(r"\s+", " ", cleaned).strip()


def split_lines(text: str | None) -> list[str]:
    if not text:
        return []
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
