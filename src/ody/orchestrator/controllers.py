"""Controllers for ody CLI commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ody.config import (
    BackendKind,
    ConfigResolver,
    NotifySetting,
    OdyConfig,
    ProjectPaths,
    config_to_document,
    write_config,
)
from ody.notify import Notifier
from ody.orchestrator.backend import (
    CommandMode,
    CommandOptions,
    available_backends,
    build_command,
    display_name,
    resolve_argv,
)
from ody.orchestrator.prompts import build_edit_plan_prompt, build_plan_prompt, build_run_prompt
from ody.orchestrator.runner import AgentRunner, OutputCallback, RunOutcome
from ody.tasks import TASK_FILE_EXT, TaskStatus, TaskStore, compact

logger = logging.getLogger(__name__)

UNTITLED = "(untitled)"


@dataclass(slots=True)
class InitCommand:
    """CLI input for writing the project configuration."""

    project_dir: Path
    backend: str
    max_iterations: int
    should_commit: bool
    validator_commands: tuple[str, ...]
    model: str | None
    agent: str
    tasks_dir: str
    notify: str
    skip_permissions: bool


@dataclass(slots=True)
class ConfigShowCommand:
    """CLI input for printing the resolved configuration."""

    project_dir: Path


@dataclass(slots=True)
class RunCommand:
    """CLI input for the agent run loop."""

    project_dir: Path
    task_file: str | None = None
    label: str | None = None
    iterations: int | None = None
    once: bool = False
    verbose: bool = False
    dry_run: bool = False
    no_notify: bool = False


@dataclass(slots=True)
class PlanCommand:
    """CLI input for task plan creation."""

    project_dir: Path
    description: str
    dry_run: bool = False
    verbose: bool = False


@dataclass(slots=True)
class TaskListCommand:
    """CLI input for task listing."""

    project_dir: Path
    status: str = TaskStatus.PENDING.value


@dataclass(slots=True)
class TaskEditCommand:
    """CLI input for editing one task plan."""

    project_dir: Path
    task_file: str
    dry_run: bool = False
    verbose: bool = False


@dataclass(slots=True)
class TaskCompactCommand:
    """CLI input for task archival."""

    project_dir: Path


class OdyCliController:
    """Command implementations; every method returns the lines to print."""

    def __init__(
        self,
        *,
        notifier: Notifier | None = None,
        echo: Callable[[str], None] | None = None,
        home: Path | None = None,
    ) -> None:
        self.notifier = notifier
        self.echo = echo
        self.home = home

    def init(self, command: InitCommand) -> list[str]:
        config = OdyConfig(
            backend=BackendKind(command.backend),
            max_iterations=command.max_iterations,
            should_commit=command.should_commit,
            validator_commands=command.validator_commands,
            model=command.model or None,
            skip_permissions=command.skip_permissions,
            agent=command.agent,
            tasks_dir=command.tasks_dir,
            notify=NotifySetting(command.notify),
        )
        paths = ProjectPaths(command.project_dir)
        write_config(config, paths.config_path)
        return [f"Configuration saved: {paths.config_path}"]

    def show_config(self, command: ConfigShowCommand) -> list[str]:
        config = self._resolver(command.project_dir).resolve()
        if config is None:
            return ["No configuration found. Run `ody init` to set up your project."]
        return [
            "Ody configuration",
            "",
            json.dumps(config_to_document(config), indent=2, ensure_ascii=False),
        ]

    def run(self, command: RunCommand) -> list[str]:
        resolver = self._resolver(command.project_dir)
        config = resolver.require()
        paths = resolver.paths

        if command.task_file is not None and command.label is not None:
            raise ValueError(
                "Cannot use both a task file argument and --label. They are mutually exclusive.",
            )
        if command.task_file is not None:
            _check_task_file(paths, command.task_file)

        task_files: list[str] | None = None
        if command.label is not None:
            task_files = TaskStore(paths.tasks_dir(config)).files_by_label(command.label)
            if not task_files:
                return ["No tasks found with the specified label."]

        prompt = build_run_prompt(config, task_file=command.task_file, task_files=task_files)
        mode = CommandMode.ONCE if command.once else CommandMode.PIPED
        argv = build_command(config.backend, prompt, CommandOptions.from_config(config), mode)

        lines = [f"Running ody with backend: {display_name(config.backend)}"]
        if command.dry_run:
            return lines + _dry_run_lines(argv, prompt)

        max_iterations = _max_iterations(command, config)
        notify = NotifySetting.DISABLED if command.no_notify else config.notify
        outcome = self._agent_runner(
            config,
            paths,
            notify=notify,
            stream_output=command.verbose or command.once,
        ).run_loop(resolve_argv(argv), max_iterations, mode)

        if outcome.completed:
            lines.append("Agent finished all available tasks")
        else:
            lines.append("Agent loop finished")
        lines.append(f"Iterations: {outcome.iterations}")
        lines.append("Agent loop complete")
        return lines

    def plan(self, command: PlanCommand) -> list[str]:
        resolver = self._resolver(command.project_dir)
        config = resolver.require()
        paths = resolver.paths

        description = command.description.strip()
        if not description:
            raise ValueError("Task description must not be empty.")

        prompt = build_plan_prompt(config, description=description)
        argv = build_command(config.backend, prompt, CommandOptions.from_config(config))
        if command.dry_run:
            return ["Prompt (dry run):", "", prompt]

        paths.tasks_dir(config).mkdir(parents=True, exist_ok=True)
        outcome = self._run_once(config, paths, argv, verbose=command.verbose)
        return [_single_run_summary(outcome), "Task planning complete"]

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        resolver = self._resolver(command.project_dir)
        config = resolver.resolve() or OdyConfig()
        tasks_dir = resolver.paths.tasks_dir(config)
        if not tasks_dir.is_dir():
            return ["Tasks directory not found. Run `ody plan` to create tasks."]

        status = TaskStatus(command.status)
        documents = TaskStore(tasks_dir).by_status(status)
        if not documents:
            return [f"No {status.value} tasks."]

        suffix = "" if len(documents) == 1 else "s"
        lines = [f"Found {len(documents)} {status.value} task{suffix}", ""]
        for document in documents:
            lines.append(f"  {document.title or UNTITLED}  {document.filename}")
        return lines

    def edit_task(self, command: TaskEditCommand) -> list[str]:
        resolver = self._resolver(command.project_dir)
        config = resolver.require()
        paths = resolver.paths

        task_path = _check_task_file(paths, command.task_file)
        prompt = build_edit_plan_prompt(
            file_path=command.task_file,
            file_content=task_path.read_text("utf-8"),
        )
        argv = build_command(config.backend, prompt, CommandOptions.from_config(config))
        if command.dry_run:
            return ["Prompt (dry run):", "", prompt]

        outcome = self._run_once(config, paths, argv, verbose=command.verbose)
        return [_single_run_summary(outcome), "Task edit complete"]

    def compact_tasks(self, command: TaskCompactCommand) -> list[str]:
        resolver = self._resolver(command.project_dir)
        config = resolver.resolve() or OdyConfig()
        paths = resolver.paths
        tasks_dir = paths.tasks_dir(config)
        if not tasks_dir.is_dir():
            return ["Tasks directory not found. Nothing to compact."]

        summary = compact(tasks_dir, paths.history_dir)
        if summary.is_noop:
            return ["No completed tasks to archive."]

        count = len(summary.archived)
        lines = [f"Archived {count} task{'' if count == 1 else 's'} to {summary.archive_path}"]
        lines.extend(
            f"Could not delete {filename}; remove it manually."
            for filename in summary.failed_deletions
        )
        return lines

    def backends(self) -> list[str]:
        lines = []
        for backend, location in available_backends().items():
            lines.append(f"{backend.value}: {location or 'not found'}")
        return lines

    def _resolver(self, project_dir: Path) -> ConfigResolver:
        return ConfigResolver(project_dir, home=self.home)

    def _agent_runner(
        self,
        config: OdyConfig,
        paths: ProjectPaths,
        *,
        notify: NotifySetting,
        stream_output: bool,
    ) -> AgentRunner:
        on_output: OutputCallback | None = None
        if stream_output and self.echo is not None:
            echo = self.echo

            def on_output(_stream: str, text: str) -> None:
                echo(text)

        return AgentRunner(
            config,
            paths,
            notifier=self.notifier,
            notify=notify,
            on_output=on_output,
        )

    def _run_once(
        self,
        config: OdyConfig,
        paths: ProjectPaths,
        argv: list[str],
        *,
        verbose: bool,
    ) -> RunOutcome:
        runner = self._agent_runner(
            config,
            paths,
            notify=NotifySetting.DISABLED,
            stream_output=verbose,
        )
        return runner.run_loop(resolve_argv(argv), 1)


def _check_task_file(paths: ProjectPaths, task_file: str) -> Path:
    if not task_file.endswith(TASK_FILE_EXT):
        raise ValueError(f"Invalid task file. File must end with {TASK_FILE_EXT}")
    path = Path(task_file)
    if not path.is_absolute():
        path = paths.root / path
    if not path.is_file():
        raise ValueError(f"Task file not found: {task_file}")
    return path


def _max_iterations(command: RunCommand, config: OdyConfig) -> int:
    if command.task_file is not None:
        if command.iterations not in (None, 1):
            logger.warning("Single-task runs always use one iteration; ignoring --iterations")
        return 1
    if command.once:
        return 1
    if command.iterations is not None:
        return command.iterations
    return config.max_iterations


def _dry_run_lines(argv: list[str], prompt: str) -> list[str]:
    return [
        "Command:",
        *(f"  {arg}" for arg in argv),
        "",
        "Prompt:",
        prompt,
        "Dry run complete.",
    ]


def _single_run_summary(outcome: RunOutcome) -> str:
    if outcome.completed:
        return "Agent reported completion"
    return "Agent exited without the completion marker"
