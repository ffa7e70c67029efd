from shared.extractors.persona import extract_persona
from shared.extractors.projects import extract_projects
from shared.extractors.roster import extract_roster
from shared.extractors.tasks import extract_last_updated, extract_tasks, parse_task_line

__all__ = [
    "extract_persona",
    "extract_projects",
    "extract_roster",
    "extract_tasks",
    "extract_last_updated",
    "parse_task_line",
]
