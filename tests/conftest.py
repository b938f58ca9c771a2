"""Shared test fixtures."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

ECHO_AGENT_ARGV = [sys.executable, "-m", "ody.orchestrator.backend.echo_agent", "--delay", "0"]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Point HOME at an empty directory so no real global config leaks in."""

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / ".ody" / "tasks").mkdir(parents=True)
    return root


def write_task(  # noqa: PLR0913
    tasks_dir: Path,
    filename: str,
    *,
    status: str = "pending",
    completed: str = "null",
    title: str = "Sample task",
    description: str = "Do the thing. Then check it.",
    labels: str | None = None,
) -> Path:
    lines = [
        "---",
        f"status: {status}",
        "created: 2025-01-01",
        "started: null",
        f"completed: {completed}",
        "---",
        f"# Task: {title}",
        "",
        "## Description",
        description,
        "",
        "## Metadata",
        "- **Complexity**: Low",
    ]
    if labels is not None:
        lines.append(f"- **Labels**: {labels}")
    path = tasks_dir / filename
    path.write_text("\n".join(lines) + "\n", "utf-8")
    return path


def install_fake_agent(bin_dir: Path, name: str, *extra_args: str) -> Path:
    """Put a ``name`` launcher on disk that runs the echo agent with ``extra_args``."""

    bin_dir.mkdir(parents=True, exist_ok=True)
    quoted = " ".join(f'"{arg}"' for arg in extra_args)
    module = "ody.orchestrator.backend.echo_agent"
    if os.name == "nt":
        launcher = bin_dir / f"{name}.cmd"
        launcher.write_text(
            f'@echo off\r\n"{sys.executable}" -m {module} --delay 0 {quoted} %*\r\n',
            "utf-8",
        )
        return launcher
    launcher = bin_dir / name
    launcher.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" -m {module} --delay 0 {quoted} "$@"\n',
        "utf-8",
    )
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
    return launcher
