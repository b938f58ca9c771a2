"""Argument vectors for the supported coding-agent CLIs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ody.config import BackendKind, OdyConfig, ProjectPaths


class CommandMode(str, Enum):
    """How the agent process is attached to the terminal."""

    PIPED = "piped"
    ONCE = "once"


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Backend-independent knobs for one agent invocation."""

    tasks_path: str
    model: str | None = None
    agent: str | None = None
    skip_permissions: bool = True
    should_commit: bool = False

    @classmethod
    def from_config(cls, config: OdyConfig) -> CommandOptions:
        return cls(
            tasks_path=ProjectPaths.tasks_token(config),
            model=config.model,
            agent=config.agent,
            skip_permissions=config.skip_permissions,
            should_commit=config.should_commit,
        )


_DISPLAY_NAMES = {
    BackendKind.OPENCODE: "OpenCode",
    BackendKind.CLAUDE: "Claude Code",
    BackendKind.CODEX: "Codex",
}


def executable_name(backend: BackendKind) -> str:
    return backend.value


def display_name(backend: BackendKind) -> str:
    return _DISPLAY_NAMES[backend]


def build_command(
    backend: BackendKind,
    prompt: str,
    options: CommandOptions,
    mode: CommandMode = CommandMode.PIPED,
) -> list[str]:
    """Return the argv for ``backend``; the last element is ``@<tasks> <prompt>``."""

    payload = f"@{options.tasks_path} {prompt}"
    match backend:
        case BackendKind.CLAUDE:
            argv = [executable_name(backend)]
            if options.skip_permissions:
                argv.append("--dangerously-skip-permissions")
            if mode is CommandMode.PIPED:
                argv.extend(["--verbose", "--output-format", "stream-json"])
            argv.extend(["-p", payload])
        case BackendKind.CODEX:
            argv = [executable_name(backend), "exec", "--full-auto"]
            if not options.should_commit:
                argv.append("--skip-git-repo-check")
            argv.append(payload)
        case BackendKind.OPENCODE:
            argv = [executable_name(backend)]
            if options.agent:
                argv.extend(["--agent", options.agent])
            if options.model:
                argv.extend(["-m", options.model])
            argv.append("run" if mode is CommandMode.PIPED else "--prompt")
            argv.append(payload)
        case _:
            raise ValueError(f"Unsupported backend: {backend!r}")
    return argv
