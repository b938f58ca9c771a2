"""Task directory scanning and task document parsing."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ody.tasks.models import TASK_FILE_EXT, TaskDocument, TaskStatus

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$", re.DOTALL | re.MULTILINE)
_TITLE_RE = re.compile(r"^#[ \t]+(?:Task:[ \t]*)?(.+?)[ \t]*\r?$", re.MULTILINE)
_DESCRIPTION_RE = re.compile(
    r"^## Description[ \t]*\r?\n(.*?)(?=^## |^---|\Z)",
    re.DOTALL | re.MULTILINE,
)
_LABELS_RE = re.compile(r"\*\*Labels\*\*:[ \t]*(.*)$", re.IGNORECASE | re.MULTILINE)
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+")

DESCRIPTION_MAX_SENTENCES = 3
DESCRIPTION_FALLBACK_CHARS = 200


def parse_frontmatter(content: str) -> dict[str, str]:
    """Parse the leading ``---`` delimited block of ``key: value`` lines.

    Returns an empty mapping when the block is missing or never closed.
    """

    match = _FRONTMATTER_RE.match(content)
    if match is None:
        return {}

    fields: dict[str, str] = {}
    for line in match.group(1).splitlines():
        key, sep, value = line.strip().partition(":")
        if not sep:
            continue
        key = key.strip()
        if not key:
            continue
        fields[key] = value.strip()
    return fields


def parse_title(content: str) -> str | None:
    """First level-one heading, without a leading ``Task:`` label."""

    match = _TITLE_RE.search(content)
    if match is None:
        return None
    return match.group(1).strip() or None


def parse_description(content: str) -> str | None:
    """First sentences of the ``## Description`` section."""

    match = _DESCRIPTION_RE.search(content)
    if match is None:
        return None
    body = match.group(1).strip()
    if not body:
        return None
    return condense_sentences(body, DESCRIPTION_MAX_SENTENCES)


def condense_sentences(text: str, max_sentences: int) -> str:
    sentences = [
        " ".join(sentence.split())
        for sentence in _SENTENCE_RE.findall(text)
        if sentence.strip()
    ]
    if not sentences:
        return text[:DESCRIPTION_FALLBACK_CHARS]
    return " ".join(sentences[:max_sentences])


def parse_labels(content: str) -> list[str]:
    """Comma-separated values of the ``**Labels**:`` metadata line."""

    match = _LABELS_RE.search(content)
    if match is None:
        return []
    return [label.strip() for label in match.group(1).split(",") if label.strip()]


def parse_task(path: Path, content: str) -> TaskDocument:
    return TaskDocument(
        filename=path.name,
        path=path,
        frontmatter=parse_frontmatter(content),
        title=parse_title(content),
        description=parse_description(content),
        labels=parse_labels(content),
    )


class TaskStore:
    """Read-only view over the ``*.code-task.md`` files of one directory.

    Every query performs a fresh scan; nothing is cached between calls.
    """

    def __init__(self, tasks_dir: Path) -> None:
        self.tasks_dir = tasks_dir

    def task_paths(self) -> list[Path]:
        if not self.tasks_dir.is_dir():
            logger.debug("Tasks directory %s does not exist", self.tasks_dir)
            return []
        try:
            entries = list(self.tasks_dir.iterdir())
        except OSError as error:
            logger.warning("Failed to list tasks directory %s: %s", self.tasks_dir, error)
            return []
        return sorted(
            (path for path in entries if path.name.endswith(TASK_FILE_EXT) and path.is_file()),
            key=lambda path: path.name,
        )

    def scan(self) -> list[TaskDocument]:
        """Parse every task file, sorted by filename. Unreadable files are skipped."""

        documents: list[TaskDocument] = []
        for path in self.task_paths():
            try:
                content = path.read_text("utf-8")
            except (OSError, UnicodeDecodeError) as error:
                logger.warning("Failed to read task file %s: %s", path.name, error)
                continue
            documents.append(parse_task(path, content))
        return documents

    def files_by_label(self, label: str) -> list[str]:
        """Filenames whose labels contain ``label`` (case-insensitive)."""

        wanted = label.strip().lower()
        return [
            document.filename
            for document in self.scan()
            if wanted in (item.lower() for item in document.labels)
        ]

    def by_status(self, status: TaskStatus) -> list[TaskDocument]:
        return [document for document in self.scan() if document.status is status]

    def completed_for_archive(self) -> list[TaskDocument]:
        """Completed tasks with a real completion date, oldest first."""

        archivable = [document for document in self.scan() if document.is_archivable]
        # zero-padded YYYY-MM-DD sorts correctly as text
        archivable.sort(key=lambda document: document.completed or "")
        return archivable
