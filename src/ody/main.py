"""CLI entrypoint for ody."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import rich_click as click

from ody import __version__
from ody.config import (
    DEFAULT_AGENT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TASKS_DIR,
    BackendKind,
    ConfigError,
    ConfigNotFoundError,
    NotifySetting,
)
from ody.orchestrator.controllers import (
    ConfigShowCommand,
    InitCommand,
    OdyCliController,
    PlanCommand,
    RunCommand,
    TaskCompactCommand,
    TaskEditCommand,
    TaskListCommand,
)
from ody.orchestrator.runner import BackendRunError
from ody.tasks import TaskStatus

click.rich_click.USE_MARKDOWN = True
CONTROLLER = OdyCliController(echo=lambda text: click.echo(text, nl=False))


@click.group()
@click.version_option(version=__version__, prog_name="ody")
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path(),
    show_default=True,
    help="Project root containing the `.ody` directory.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Enable logging to stderr at this level.",
)
@click.pass_context
def ody(ctx: click.Context, project_dir: Path, log_level: str | None) -> None:
    """Drive coding agents through `.code-task.md` task files."""

    if log_level is not None:
        logging.basicConfig(
            level=log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    ctx.obj = project_dir.resolve()


@ody.command("init")
@click.option(
    "--backend",
    type=click.Choice([kind.value for kind in BackendKind]),
    default=BackendKind.OPENCODE.value,
    show_default=True,
    help="Coding agent CLI to drive.",
)
@click.option(
    "--max-iterations",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_ITERATIONS,
    show_default=True,
    help="Loop iterations per run; 0 runs until the agent reports completion.",
)
@click.option("--should-commit/--no-should-commit", default=False, show_default=True)
@click.option(
    "--validator-command",
    "validator_commands",
    multiple=True,
    help="Command the agent runs to validate its work. Can be repeated.",
)
@click.option("--model", default=None, help="Model id passed to the agent.")
@click.option("--agent", default=DEFAULT_AGENT, show_default=True, help="Agent profile.")
@click.option(
    "--tasks-dir",
    default=DEFAULT_TASKS_DIR,
    show_default=True,
    help="Task directory name under `.ody`.",
)
@click.option(
    "--notify",
    type=click.Choice([setting.value for setting in NotifySetting]),
    default=NotifySetting.DISABLED.value,
    show_default=True,
    help="Notification cadence.",
)
@click.option("--skip-permissions/--no-skip-permissions", default=True, show_default=True)
@click.pass_obj
def init(  # noqa: PLR0913
    project_dir: Path,
    backend: str,
    max_iterations: int,
    should_commit: bool,
    validator_commands: tuple[str, ...],
    model: str | None,
    agent: str,
    tasks_dir: str,
    notify: str,
    skip_permissions: bool,
) -> None:
    """Write the project configuration to `.ody/ody.json`."""

    _emit_lines(
        _call(
            CONTROLLER.init,
            InitCommand(
                project_dir=project_dir,
                backend=backend,
                max_iterations=max_iterations,
                should_commit=should_commit,
                validator_commands=validator_commands,
                model=model,
                agent=agent,
                tasks_dir=tasks_dir,
                notify=notify,
                skip_permissions=skip_permissions,
            ),
        ),
    )


@ody.command("config")
@click.pass_obj
def show_config(project_dir: Path) -> None:
    """Print the resolved configuration."""

    _emit_lines(_call(CONTROLLER.show_config, ConfigShowCommand(project_dir=project_dir)))


@ody.command("run")
@click.argument("task_file", required=False)
@click.option("--label", "-l", default=None, help="Only run tasks carrying this label.")
@click.option(
    "--iterations",
    "-i",
    type=click.IntRange(min=0),
    default=None,
    help="Override `maxIterations`; 0 runs until completion.",
)
@click.option("--once", is_flag=True, help="Run a single interactive iteration.")
@click.option("--verbose", is_flag=True, help="Stream agent output while it runs.")
@click.option("--dry-run", is_flag=True, help="Print the command and prompt only.")
@click.option("--no-notify", is_flag=True, help="Disable notifications for this run.")
@click.pass_obj
def run(  # noqa: PLR0913
    project_dir: Path,
    task_file: str | None,
    label: str | None,
    iterations: int | None,
    once: bool,
    verbose: bool,
    dry_run: bool,
    no_notify: bool,
) -> None:
    """Run the agent loop over pending tasks, or over one TASK_FILE."""

    _emit_lines(
        _call(
            CONTROLLER.run,
            RunCommand(
                project_dir=project_dir,
                task_file=task_file,
                label=label,
                iterations=iterations,
                once=once,
                verbose=verbose,
                dry_run=dry_run,
                no_notify=no_notify,
            ),
        ),
    )


@ody.command("plan")
@click.argument("description")
@click.option("--dry-run", is_flag=True, help="Print the prompt only.")
@click.option("--verbose", is_flag=True, help="Stream agent output while it runs.")
@click.pass_obj
def plan(project_dir: Path, description: str, dry_run: bool, verbose: bool) -> None:
    """Ask the agent to write a new task file from DESCRIPTION."""

    _emit_lines(
        _call(
            CONTROLLER.plan,
            PlanCommand(
                project_dir=project_dir,
                description=description,
                dry_run=dry_run,
                verbose=verbose,
            ),
        ),
    )


@ody.group()
def task() -> None:
    """Task file commands."""


@task.command("list")
@click.option(
    "--status",
    type=click.Choice([status.value for status in TaskStatus]),
    default=TaskStatus.PENDING.value,
    show_default=True,
    help="Status filter.",
)
@click.pass_obj
def task_list(project_dir: Path, status: str) -> None:
    """List tasks with the given status."""

    _emit_lines(
        _call(CONTROLLER.list_tasks, TaskListCommand(project_dir=project_dir, status=status)),
    )


@task.command("edit")
@click.argument("task_file")
@click.option("--dry-run", is_flag=True, help="Print the prompt only.")
@click.option("--verbose", is_flag=True, help="Stream agent output while it runs.")
@click.pass_obj
def task_edit(project_dir: Path, task_file: str, dry_run: bool, verbose: bool) -> None:
    """Ask the agent to revise TASK_FILE in place."""

    _emit_lines(
        _call(
            CONTROLLER.edit_task,
            TaskEditCommand(
                project_dir=project_dir,
                task_file=task_file,
                dry_run=dry_run,
                verbose=verbose,
            ),
        ),
    )


@task.command("compact")
@click.pass_obj
def task_compact(project_dir: Path) -> None:
    """Archive completed tasks into `.ody/history`."""

    _emit_lines(_call(CONTROLLER.compact_tasks, TaskCompactCommand(project_dir=project_dir)))


@ody.command("backends")
def backends() -> None:
    """Show which agent CLIs are installed."""

    _emit_lines(CONTROLLER.backends())


def _call(method: Callable[[Any], list[str]], command: object) -> list[str]:
    try:
        return method(command)
    except ConfigNotFoundError as error:
        raise click.ClickException(str(error)) from error
    except ConfigError as error:
        raise click.ClickException(f"Invalid configuration: {error}") from error
    except BackendRunError as error:
        if error.phase == "spawn":
            raise click.ClickException(
                f"{error} Is the agent CLI installed and on PATH?",
            ) from error
        raise click.ClickException(str(error)) from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    except OSError as error:
        raise click.ClickException(f"File operation failed: {error}") from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    ody()
