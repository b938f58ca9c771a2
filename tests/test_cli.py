from __future__ import annotations

import json
import os
from pathlib import Path

import allure
from click.testing import CliRunner
from conftest import install_fake_agent, write_task

from ody import __version__
from ody.config import BackendKind, OdyConfig, ProjectPaths, write_config
from ody.main import ody

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Commands"),
]


def _invoke(project_dir: Path, *args: str):
    return CliRunner().invoke(ody, ["--project-dir", str(project_dir), *args])


def _configure(project_dir: Path, **overrides) -> OdyConfig:
    config = OdyConfig(**overrides)
    write_config(config, ProjectPaths(project_dir).config_path)
    return config


def _put_agent_on_path(tmp_path: Path, monkeypatch, name: str, *agent_args: str) -> None:
    bin_dir = tmp_path / "bin"
    install_fake_agent(bin_dir, name, *agent_args)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")


def test_version_option() -> None:
    result = CliRunner().invoke(ody, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_local_config(project_dir: Path) -> None:
    result = _invoke(
        project_dir,
        "init",
        "--backend",
        "codex",
        "--max-iterations",
        "0",
        "--validator-command",
        "pytest -q",
        "--validator-command",
        "ruff check",
        "--notify",
        "individual",
    )

    assert result.exit_code == 0, result.output
    document = json.loads((project_dir / ".ody" / "ody.json").read_text("utf-8"))
    assert document["backend"] == "codex"
    assert document["maxIterations"] == 0
    assert document["validatorCommands"] == ["pytest -q", "ruff check"]
    assert document["notify"] == "individual"


def test_init_rejects_empty_agent(project_dir: Path) -> None:
    result = _invoke(project_dir, "init", "--agent", "")

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_config_without_document_prints_hint(project_dir: Path) -> None:
    result = _invoke(project_dir, "config")

    assert result.exit_code == 0
    assert "No configuration found" in result.output


def test_config_prints_resolved_document(project_dir: Path) -> None:
    _configure(project_dir, backend=BackendKind.CLAUDE)

    result = _invoke(project_dir, "config")

    assert result.exit_code == 0
    assert '"backend": "claude"' in result.output


def test_config_reports_invalid_document(project_dir: Path) -> None:
    (project_dir / ".ody" / "ody.json").write_text('{"backend": "gemini"}', "utf-8")

    result = _invoke(project_dir, "config")

    assert result.exit_code == 1
    assert "Invalid backend" in result.output


def test_run_without_config_asks_for_init(project_dir: Path) -> None:
    result = _invoke(project_dir, "run")

    assert result.exit_code == 1
    assert "ody init" in result.output


def test_run_dry_run_prints_command_and_prompt(project_dir: Path) -> None:
    _configure(project_dir, validator_commands=("pytest",))

    result = _invoke(project_dir, "run", "--dry-run")

    assert result.exit_code == 0, result.output
    assert "Running ody with backend: OpenCode" in result.output
    assert "Command:\n  opencode\n  --agent\n  build\n  run\n  @.ody/tasks 1. Look in" in (
        result.output
    )
    assert "Prompt:" in result.output
    assert "validate work: pytest (skip if none)" in result.output
    assert "Dry run complete." in result.output


def test_run_rejects_task_file_with_label(project_dir: Path) -> None:
    _configure(project_dir)
    write_task(project_dir / ".ody" / "tasks", "a.code-task.md")

    result = _invoke(project_dir, "run", ".ody/tasks/a.code-task.md", "--label", "x")

    assert result.exit_code == 1
    assert "mutually exclusive" in result.output


def test_run_rejects_wrong_extension_and_missing_file(project_dir: Path) -> None:
    _configure(project_dir)

    wrong = _invoke(project_dir, "run", "notes.md")
    missing = _invoke(project_dir, "run", ".ody/tasks/missing.code-task.md")

    assert wrong.exit_code == 1
    assert "must end with .code-task.md" in wrong.output
    assert missing.exit_code == 1
    assert "Task file not found" in missing.output


def test_run_label_without_matches_warns(project_dir: Path) -> None:
    _configure(project_dir)
    write_task(project_dir / ".ody" / "tasks", "a.code-task.md", labels="ui")

    result = _invoke(project_dir, "run", "--label", "auth")

    assert result.exit_code == 0
    assert "No tasks found with the specified label." in result.output


def test_run_label_filter_lists_matching_files(project_dir: Path) -> None:
    _configure(project_dir)
    tasks_dir = project_dir / ".ody" / "tasks"
    write_task(tasks_dir, "a.code-task.md", labels="auth")
    write_task(tasks_dir, "b.code-task.md", labels="api, Auth")
    write_task(tasks_dir, "c.code-task.md", labels="ui")

    result = _invoke(project_dir, "run", "--label", "auth", "--dry-run")

    assert result.exit_code == 0, result.output
    assert (
        "LABEL FILTER\nOnly consider the following task files:\n"
        "  - a.code-task.md\n  - b.code-task.md"
    ) in result.output
    assert "  - c.code-task.md" not in result.output


def test_run_loop_with_fake_agent(project_dir: Path, tmp_path: Path, monkeypatch) -> None:
    _configure(project_dir, max_iterations=5)
    counter = tmp_path / "calls.txt"
    _put_agent_on_path(
        tmp_path,
        monkeypatch,
        "opencode",
        "--counter-file",
        str(counter),
        "--complete-on",
        "2",
    )

    result = _invoke(project_dir, "run")

    assert result.exit_code == 0, result.output
    assert "Agent finished all available tasks" in result.output
    assert "Iterations: 2" in result.output
    assert counter.read_text("utf-8") == "2"


def test_run_iterations_override_and_verbose(
    project_dir: Path,
    tmp_path: Path,
    monkeypatch,
) -> None:
    _configure(project_dir, max_iterations=5)
    counter = tmp_path / "calls.txt"
    _put_agent_on_path(tmp_path, monkeypatch, "opencode", "--counter-file", str(counter))

    result = _invoke(project_dir, "run", "--iterations", "2", "--verbose")

    assert result.exit_code == 0, result.output
    assert "echo-agent call 2" in result.output
    assert "Agent loop finished" in result.output
    assert "Iterations: 2" in result.output


def test_single_task_run_uses_one_iteration(
    project_dir: Path,
    tmp_path: Path,
    monkeypatch,
) -> None:
    _configure(project_dir, max_iterations=5)
    write_task(project_dir / ".ody" / "tasks", "a.code-task.md")
    counter = tmp_path / "calls.txt"
    _put_agent_on_path(tmp_path, monkeypatch, "opencode", "--counter-file", str(counter))

    result = _invoke(project_dir, "run", ".ody/tasks/a.code-task.md", "--iterations", "3")

    assert result.exit_code == 0, result.output
    assert "Iterations: 1" in result.output
    assert counter.read_text("utf-8") == "1"


def test_run_reports_missing_agent_binary(
    project_dir: Path,
    tmp_path: Path,
    monkeypatch,
) -> None:
    _configure(project_dir)
    empty_bin = tmp_path / "empty-bin"
    empty_bin.mkdir()
    monkeypatch.setenv("PATH", str(empty_bin))

    result = _invoke(project_dir, "run")

    assert result.exit_code == 1
    assert "Agent command not found: opencode" in result.output


def test_plan_dry_run_renders_description(project_dir: Path) -> None:
    _configure(project_dir, tasks_dir="backlog")

    result = _invoke(project_dir, "plan", "Add rate limiting", "--dry-run")

    assert result.exit_code == 0, result.output
    assert "Add rate limiting" in result.output
    assert ".ody/backlog" in result.output


def test_plan_creates_tasks_dir_and_runs_agent(tmp_path: Path, monkeypatch) -> None:
    project = tmp_path / "fresh"
    _configure(project, tasks_dir="backlog")
    _put_agent_on_path(tmp_path, monkeypatch, "opencode", "--complete-on", "1")

    result = _invoke(project, "plan", "Add rate limiting")

    assert result.exit_code == 0, result.output
    assert (project / ".ody" / "backlog").is_dir()
    assert "Agent reported completion" in result.output


def test_task_list_filters_by_status(project_dir: Path) -> None:
    tasks_dir = project_dir / ".ody" / "tasks"
    write_task(tasks_dir, "b.code-task.md", title="Second")
    write_task(tasks_dir, "a.code-task.md", title="First")
    write_task(tasks_dir, "c.code-task.md", status="completed", completed="2025-01-01")

    pending = _invoke(project_dir, "task", "list")
    in_progress = _invoke(project_dir, "task", "list", "--status", "in_progress")

    assert pending.exit_code == 0
    assert "Found 2 pending tasks" in pending.output
    assert pending.output.index("First") < pending.output.index("Second")
    assert "No in_progress tasks." in in_progress.output


def test_task_list_without_tasks_dir(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "task", "list")

    assert "Tasks directory not found" in result.output


def test_task_compact_archives_completed(project_dir: Path) -> None:
    tasks_dir = project_dir / ".ody" / "tasks"
    write_task(tasks_dir, "done.code-task.md", status="completed", completed="2025-01-01")

    first = _invoke(project_dir, "task", "compact")
    second = _invoke(project_dir, "task", "compact")

    assert first.exit_code == 0
    assert "Archived 1 task to" in first.output
    assert not (tasks_dir / "done.code-task.md").exists()
    assert len(list((project_dir / ".ody" / "history").glob("archive-*.md"))) == 1
    assert "No completed tasks to archive." in second.output


def test_task_compact_reports_unwritable_history(project_dir: Path) -> None:
    tasks_dir = project_dir / ".ody" / "tasks"
    write_task(tasks_dir, "done.code-task.md", status="completed", completed="2025-01-01")
    (project_dir / ".ody" / "history").write_text("not a directory", "utf-8")

    result = _invoke(project_dir, "task", "compact")

    assert result.exit_code == 1
    assert "File operation failed" in result.output
    assert not isinstance(result.exception, OSError)
    assert (tasks_dir / "done.code-task.md").exists()


def test_task_edit_dry_run_embeds_file(project_dir: Path) -> None:
    _configure(project_dir)
    write_task(project_dir / ".ody" / "tasks", "a.code-task.md", title="Edit me")

    result = _invoke(project_dir, "task", "edit", ".ody/tasks/a.code-task.md", "--dry-run")

    assert result.exit_code == 0, result.output
    assert "in place at .ody/tasks/a.code-task.md" in result.output
    assert "# Task: Edit me" in result.output


def test_backends_lists_installed_agents(tmp_path: Path, monkeypatch) -> None:
    _put_agent_on_path(tmp_path, monkeypatch, "codex")

    result = CliRunner().invoke(ody, ["backends"])

    assert result.exit_code == 0
    assert f"codex: {tmp_path / 'bin'}" in result.output
    assert "claude:" in result.output
