"""Task documents: parsing, selection and archival."""

from ody.tasks.compactor import CompactionSummary, compact
from ody.tasks.models import TASK_FILE_EXT, CompletedTask, TaskDocument, TaskStatus
from ody.tasks.store import TaskStore

__all__ = [
    "TASK_FILE_EXT",
    "CompactionSummary",
    "CompletedTask",
    "TaskDocument",
    "TaskStatus",
    "TaskStore",
    "compact",
]
