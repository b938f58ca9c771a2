"""Locate backend executables on ``PATH``."""

from __future__ import annotations

import shutil

from ody.config import BackendKind
from ody.orchestrator.backend.commands import executable_name


def which(name: str) -> str | None:
    return shutil.which(name)


def available_backends() -> dict[BackendKind, str | None]:
    """Resolved executable path per backend, ``None`` where it is not installed."""

    return {backend: which(executable_name(backend)) for backend in BackendKind}


def resolve_argv(argv: list[str]) -> list[str]:
    """Replace the command head with its absolute path when ``PATH`` has it."""

    if not argv:
        return argv
    resolved = which(argv[0])
    if resolved is None:
        return list(argv)
    return [resolved, *argv[1:]]
