from __future__ import annotations

from shared.extractors.patterns import bullet, heading, key_value, normalize_heading, split_lines, strip_emphasis
from shared.model import PersonaDocument

SECTION_KEYS = (
    ("when to use", "when_to_use"),
    ("core truths", "core_truths"),
    ("specialt", "specialties"),
    ("personality", "personality"),
)
SCALAR_KEYS = {"model": "model", "base": "base", "base model": "base", "purpose": "purpose"}


def _section_for(title: str) -> str | None:
    normalized = normalize_heading(title)
    for needle, key in SECTION_KEYS:
        if needle in normalized:
            return key
    return None


def extract_persona(text: str | None, path: str | None = None) -> PersonaDocument:
    """Parse one agent's persona ("soul") document.

    Bullets accumulate under the most recent recognised heading; bullets under any other
    heading are ignored. ``**Key:** value`` lines fill scalar fields wherever they appear.
    """
    buckets: dict[str, list[str]] = {"specialties": [], "when_to_use": [], "core_truths": [], "personality": []}
    scalars: dict[str, str] = {}
    section: str | None = None

    for line in split_lines(text):
        h = heading(line)
        if h is not None:
            section = _section_for(h[1])
            continue

        kv = key_value(line)
        if kv is not None:
            key, value = kv
            if key in SCALAR_KEYS and value:
                scalars.setdefault(SCALAR_KEYS[key], strip_emphasis(value))
                continue
            if key == "personality" and value:
                buckets["personality"].append(strip_emphasis(value))
                continue

        item = bullet(line)
        if item is None or section is None:
            continue
        item = strip_emphasis(item)
        if item:
            buckets[section].append(item)

    return PersonaDocument(
        personality="; ".join(buckets["personality"]),
        specialties=tuple(buckets["specialties"]),
        when_to_use=tuple(buckets["when_to_use"]),
        core_truths=tuple(buckets["core_truths"]),
        model=scalars.get("model"),
        base=scalars.get("base"),
        purpose=scalars.get("purpose"),
        path=path,
    )
