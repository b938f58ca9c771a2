"""Archive completed task documents into a dated history file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from ody.tasks.models import CompletedTask
from ody.tasks.store import TaskStore

logger = logging.getLogger(__name__)

UNTITLED = "(untitled)"
NO_DESCRIPTION = "No description."


@dataclass(slots=True)
class CompactionSummary:
    """Outcome of one compaction run."""

    archived: list[CompletedTask] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed_deletions: list[str] = field(default_factory=list)
    archive_path: Path | None = None

    @property
    def is_noop(self) -> bool:
        return not self.archived


def compact(tasks_dir: Path, history_dir: Path, *, today: date | None = None) -> CompactionSummary:
    """Fold completed tasks into ``history_dir/archive-<date>.md`` and delete them.

    An archive that already exists for the same day is appended to. Source deletion is best-effort: each file is attempted independently and a
    failure never invalidates the archive that was already written.
    """

    documents = TaskStore(tasks_dir).completed_for_archive()
    if not documents:
        logger.info("No completed tasks to archive in %s", tasks_dir)
        return CompactionSummary()

    archived = [
        CompletedTask(
            filename=document.filename,
            title=document.title or UNTITLED,
            description=document.description or NO_DESCRIPTION,
            completed=document.completed or "",
        )
        for document in documents
    ]

    archive_day = today or date.today()
    history_dir.mkdir(parents=True, exist_ok=True)
    archive_path = history_dir / f"archive-{archive_day.isoformat()}.md"
    if archive_path.exists():
        with archive_path.open("a", encoding="utf-8") as archive:
            archive.write("\n" + render_entries(archived))
        logger.info("Appended %d task(s) to %s", len(archived), archive_path)
    else:
        archive_path.write_text(render_archive(archived), "utf-8")
        logger.info("Wrote archive of %d task(s) to %s", len(archived), archive_path)

    summary = CompactionSummary(archived=archived, archive_path=archive_path)
    for document in documents:
        try:
            document.path.unlink()
        except OSError as error:
            logger.warning("Failed to delete archived task %s: %s", document.filename, error)
            summary.failed_deletions.append(document.filename)
            continue
        summary.deleted.append(document.filename)
    return summary


def render_archive(tasks: list[CompletedTask]) -> str:
    header = "\n".join(
        [
            "# Archived Tasks",
            "",
            "Tasks archived by `ody task compact`.",
            "",
            "---",
            "",
        ],
    )
    return header + "\n" + render_entries(tasks)


def render_entries(tasks: list[CompletedTask]) -> str:
    """Archive entries without the header, for appending to a same-day archive."""

    lines: list[str] = []
    for task in tasks:
        lines.extend(
            [
                f"## {task.title}",
                "",
                f"- **File**: `{task.filename}`",
                f"- **Completed**: {task.completed}",
                "",
                task.description,
                "",
                "---",
                "",
            ],
        )
    return "\n".join(lines)
