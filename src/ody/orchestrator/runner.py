"""Subprocess runner and iteration loop for coding agents."""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ody.config import NotifySetting, OdyConfig, ProjectPaths
from ody.notify import LoggingNotifier, Notifier, notify_iteration, notify_loop_finished
from ody.orchestrator.backend.commands import CommandMode
from ody.orchestrator.stream import contains_completion_marker, drain_stream

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 2.0
MARKER_POLL_SECONDS = 0.1
READER_GRACE_SECONDS = 2.0

OutputCallback = Callable[[str, str], None]


class BackendRunError(RuntimeError):
    """Agent process could not be started or waited on."""

    def __init__(self, message: str, *, phase: str, command: str) -> None:
        super().__init__(message)
        self.phase = phase
        self.command = command


class RunState(str, Enum):
    """How an agent loop ended."""

    COMPLETED = "completed"
    EXHAUSTED = "exhausted"


@dataclass(slots=True)
class RunIteration:
    """Captured output of one agent process."""

    stdout: str
    stderr: str
    completed: bool
    exit_code: int


@dataclass(slots=True)
class RunOutcome:
    """Result of an agent loop."""

    state: RunState
    iterations: int
    last: RunIteration | None = None

    @property
    def completed(self) -> bool:
        return self.state is RunState.COMPLETED


def run_iteration(
    argv: Sequence[str],
    *,
    mode: CommandMode = CommandMode.PIPED,
    cwd: Path | None = None,
    on_output: OutputCallback | None = None,
) -> RunIteration:
    """Spawn the agent once and drain its output until it exits.

    Both pipes are drained on their own threads. When the completion marker
    shows up on stdout the process is terminated, then killed if it does not
    exit within the grace period. Once the process is gone each reader gets
    ``READER_GRACE_SECONDS`` to reach EOF; output arriving later is dropped.
    A non-zero exit code is reported, not raised.
    """

    if not argv:
        raise BackendRunError("Agent command is empty.", phase="spawn", command="")
    command_head = argv[0]
    logger.debug("Spawning agent: %s", list(argv))

    try:
        process = subprocess.Popen(  # noqa: S603
            list(argv),
            cwd=cwd,
            stdin=subprocess.DEVNULL if mode is CommandMode.PIPED else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as error:
        raise BackendRunError(
            f"Agent command not found: {command_head}",
            phase="spawn",
            command=command_head,
        ) from error
    except OSError as error:
        raise BackendRunError(
            f"Agent failed to start: {error}",
            phase="spawn",
            command=command_head,
        ) from error

    marker_seen = threading.Event()
    finished = threading.Event()
    chunks: dict[str, list[str]] = {"stdout": [], "stderr": []}

    def _drain(name: str, stream, detect: bool) -> None:
        echo = on_output

        def on_text(text: str) -> None:
            nonlocal echo
            if finished.is_set():
                return
            chunks[name].append(text)
            if echo is None:
                return
            try:
                echo(name, text)
            except Exception:
                logger.exception("Output callback failed on agent %s; echo disabled", name)
                echo = None

        try:
            drain_stream(
                stream,
                on_text=on_text,
                stop_when=contains_completion_marker if detect else None,
                stop_event=marker_seen if detect else None,
            )
        except (OSError, ValueError):
            logger.exception("Reading agent %s failed", name)

    threads = {
        name: threading.Thread(
            target=_drain,
            args=(name, stream, name == "stdout"),
            daemon=True,
            name=f"ody-agent-{name}",
        )
        for name, stream in (("stdout", process.stdout), ("stderr", process.stderr))
    }
    for thread in threads.values():
        thread.start()

    while process.poll() is None:
        if marker_seen.wait(timeout=MARKER_POLL_SECONDS):
            logger.info("Completion marker detected, stopping agent")
            _terminate_process(process)
            break

    # processes spawned by the agent can hold the pipes open after it exits
    for name, thread in threads.items():
        thread.join(timeout=READER_GRACE_SECONDS)
        if thread.is_alive():
            logger.warning("Agent %s still open after exit; no longer reading it", name)
    finished.set()
    try:
        exit_code = process.wait()
    except OSError as error:
        raise BackendRunError(
            f"Failed to wait for agent: {error}",
            phase="wait",
            command=command_head,
        ) from error
    finally:
        for name, stream in (("stdout", process.stdout), ("stderr", process.stderr)):
            if stream is not None and not threads[name].is_alive():
                stream.close()

    stdout = "".join(chunks["stdout"])
    return RunIteration(
        stdout=stdout,
        stderr="".join(chunks["stderr"]),
        completed=marker_seen.is_set() or contains_completion_marker(stdout),
        exit_code=exit_code,
    )


class AgentRunner:
    """Repeat agent iterations until the completion marker or the budget."""

    def __init__(
        self,
        config: OdyConfig,
        paths: ProjectPaths,
        *,
        notifier: Notifier | None = None,
        notify: NotifySetting | None = None,
        on_output: OutputCallback | None = None,
    ) -> None:
        self.config = config
        self.paths = paths
        self.notifier = notifier or LoggingNotifier()
        self.notify = notify if notify is not None else config.notify
        self.on_output = on_output

    def run_loop(
        self,
        argv: Sequence[str],
        max_iterations: int,
        mode: CommandMode = CommandMode.PIPED,
    ) -> RunOutcome:
        """Run ``argv`` repeatedly; ``max_iterations == 0`` means no limit."""

        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")

        iteration = 0
        last: RunIteration | None = None
        state = RunState.EXHAUSTED
        while max_iterations == 0 or iteration < max_iterations:
            iteration += 1
            logger.info("Starting agent iteration %d", iteration)
            last = run_iteration(
                argv,
                mode=mode,
                cwd=self.paths.root,
                on_output=self.on_output,
            )
            logger.info(
                "Agent iteration %d finished with exit code %d",
                iteration,
                last.exit_code,
            )
            notify_iteration(self.notifier, self.notify, iteration)
            if last.completed:
                state = RunState.COMPLETED
                break

        notify_loop_finished(self.notifier, self.notify)
        return RunOutcome(state=state, iterations=iteration, last=last)


def _terminate_process(process: subprocess.Popen[bytes]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Agent did not exit after terminate, killing it")
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
