"""Agent backend command construction and discovery."""

from ody.orchestrator.backend.commands import (
    CommandMode,
    CommandOptions,
    build_command,
    display_name,
    executable_name,
)
from ody.orchestrator.backend.detect import available_backends, resolve_argv, which

__all__ = [
    "CommandMode",
    "CommandOptions",
    "available_backends",
    "build_command",
    "display_name",
    "executable_name",
    "resolve_argv",
    "which",
]
