"""Task document models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

TASK_FILE_EXT = ".code-task.md"
NULL_DATE = "null"


class TaskStatus(str, Enum):
    """Lifecycle states written into task front matter by the agent."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(slots=True)
class TaskDocument:
    """One parsed ``.code-task.md`` file."""

    filename: str
    path: Path
    frontmatter: dict[str, str] = field(default_factory=dict)
    title: str | None = None
    description: str | None = None
    labels: list[str] = field(default_factory=list)

    @property
    def status(self) -> TaskStatus | None:
        raw = self.frontmatter.get("status")
        if raw is None:
            return None
        try:
            return TaskStatus(raw)
        except ValueError:
            return None

    @property
    def created(self) -> str | None:
        return _date_field(self.frontmatter, "created")

    @property
    def started(self) -> str | None:
        return _date_field(self.frontmatter, "started")

    @property
    def completed(self) -> str | None:
        return _date_field(self.frontmatter, "completed")

    @property
    def is_archivable(self) -> bool:
        """Completed status backed by an actual completion date."""

        return self.status is TaskStatus.COMPLETED and self.completed is not None


@dataclass(slots=True)
class CompletedTask:
    """Summary of an archived task."""

    filename: str
    title: str
    description: str
    completed: str


def _date_field(frontmatter: dict[str, str], key: str) -> str | None:
    value = frontmatter.get(key)
    if not value or value == NULL_DATE:
        return None
    return value
