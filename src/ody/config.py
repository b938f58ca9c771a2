"""Configuration resolution for agent runs.

Two optional JSON documents feed one immutable :class:`OdyConfig`: a global
document (first existing candidate wins) and a project-local document. Local
values override global ones field by field; built-in defaults fill the rest.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

BASE_DIR = ".ody"
CONFIG_FILE = "ody.json"
DEFAULT_TASKS_DIR = "tasks"
DEFAULT_AGENT = "build"
DEFAULT_MAX_ITERATIONS = 5
HISTORY_DIR = "history"
PROGRESS_FILE = f"{BASE_DIR}/progress.txt"


class BackendKind(str, Enum):
    """External coding agents the run loop can drive."""

    OPENCODE = "opencode"
    CLAUDE = "claude"
    CODEX = "codex"


class NotifySetting(str, Enum):
    """Notification cadence consumed by the run loop notifier."""

    DISABLED = "disabled"
    ALL = "all"
    INDIVIDUAL = "individual"


SUPPORTED_BACKENDS = tuple(kind.value for kind in BackendKind)


class ConfigError(ValueError):
    """Resolved configuration is invalid."""


class InvalidBackendError(ConfigError):
    """Backend is not one of the supported agents."""


class EmptyAgentError(ConfigError):
    """Agent profile is an empty string."""


class EmptyTasksDirError(ConfigError):
    """Tasks directory name is an empty string."""


class ConfigDocumentError(ConfigError):
    """A configuration document is not valid JSON or has a mistyped field."""


class ConfigNotFoundError(LookupError):
    """No configuration document exists for a command that needs one."""


@dataclass(frozen=True, slots=True)
class OdyConfig:
    """Validated settings for one invocation."""

    backend: BackendKind = BackendKind.OPENCODE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    should_commit: bool = False
    validator_commands: tuple[str, ...] = ()
    model: str | None = None
    skip_permissions: bool = True
    agent: str = DEFAULT_AGENT
    tasks_dir: str = DEFAULT_TASKS_DIR
    notify: NotifySetting = NotifySetting.DISABLED


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    """Filesystem locations derived from the project root."""

    root: Path

    @property
    def base_dir(self) -> Path:
        return self.root / BASE_DIR

    @property
    def config_path(self) -> Path:
        return self.base_dir / CONFIG_FILE

    @property
    def history_dir(self) -> Path:
        return self.base_dir / HISTORY_DIR

    def tasks_dir(self, config: OdyConfig | None = None) -> Path:
        return self.root / self.tasks_token(config)

    @staticmethod
    def tasks_token(config: OdyConfig | None = None) -> str:
        """Project-relative tasks path handed to the agent, e.g. ``.ody/tasks``."""

        name = config.tasks_dir if config is not None else DEFAULT_TASKS_DIR
        return f"{BASE_DIR}/{name}"


# Raw document keys in the order they are written back to disk.
_DOCUMENT_KEYS = (
    "backend",
    "maxIterations",
    "shouldCommit",
    "validatorCommands",
    "model",
    "skipPermissions",
    "agent",
    "tasksDir",
    "notify",
)


def global_config_candidates(home: Path | None = None) -> tuple[Path, ...]:
    """Global document locations, in lookup order."""

    home_dir = home if home is not None else Path.home()
    return (
        home_dir / BASE_DIR / CONFIG_FILE,
        home_dir / ".config" / "ody" / CONFIG_FILE,
    )


def resolve_config(
    global_candidates: Iterable[Path],
    local_path: Path,
) -> OdyConfig | None:
    """Load, merge and validate configuration documents.

    Returns ``None`` when neither a global nor a local document exists; that
    outcome is not an error by itself.
    """

    global_doc = _load_first_document(global_candidates)
    local_doc = _load_document(local_path) if local_path.is_file() else None
    if global_doc is None and local_doc is None:
        logger.debug("No configuration document found")
        return None

    merged = merge_documents(global_doc, local_doc)
    config = document_to_config(merged)
    validate_config(config)
    return config


def merge_documents(
    global_doc: Mapping[str, Any] | None,
    local_doc: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Shallow field-level merge; local values win, lists are replaced wholesale."""

    merged: dict[str, Any] = {}
    for key in _DOCUMENT_KEYS:
        if local_doc is not None and local_doc.get(key) is not None:
            merged[key] = local_doc[key]
        elif global_doc is not None and global_doc.get(key) is not None:
            merged[key] = global_doc[key]
    return merged


def document_to_config(document: Mapping[str, Any]) -> OdyConfig:
    """Convert a merged raw document to :class:`OdyConfig`, applying defaults."""

    backend_raw = _typed(document, "backend", str, default=BackendKind.OPENCODE.value)
    try:
        backend = BackendKind(backend_raw)
    except ValueError as error:
        raise InvalidBackendError(
            f"Invalid backend: {backend_raw!r}. "
            f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}.",
        ) from error

    max_iterations = _typed(document, "maxIterations", int, default=DEFAULT_MAX_ITERATIONS)
    if max_iterations < 0:
        raise ConfigDocumentError(
            f"maxIterations must be a non-negative integer, got {max_iterations}.",
        )

    validator_commands = _typed(document, "validatorCommands", list, default=[])
    if not all(isinstance(item, str) for item in validator_commands):
        raise ConfigDocumentError("validatorCommands must be a list of strings.")

    return OdyConfig(
        backend=backend,
        max_iterations=max_iterations,
        should_commit=_typed(document, "shouldCommit", bool, default=False),
        validator_commands=tuple(validator_commands),
        model=_typed(document, "model", str, default=None),
        skip_permissions=_typed(document, "skipPermissions", bool, default=True),
        agent=_typed(document, "agent", str, default=DEFAULT_AGENT),
        tasks_dir=_typed(document, "tasksDir", str, default=DEFAULT_TASKS_DIR),
        notify=parse_notify_setting(document.get("notify")),
    )


def config_to_document(config: OdyConfig) -> dict[str, Any]:
    """Serialize configuration back to the camelCase document format."""

    document: dict[str, Any] = {
        "backend": config.backend.value,
        "maxIterations": config.max_iterations,
        "shouldCommit": config.should_commit,
        "validatorCommands": list(config.validator_commands),
        "skipPermissions": config.skip_permissions,
        "agent": config.agent,
        "tasksDir": config.tasks_dir,
        "notify": serialize_notify_setting(config.notify),
    }
    if config.model is not None:
        document["model"] = config.model
    return {key: document[key] for key in _DOCUMENT_KEYS if key in document}


def validate_config(config: OdyConfig) -> None:
    """Raise a named :class:`ConfigError` for each invariant violation."""

    if not isinstance(config.backend, BackendKind):
        raise InvalidBackendError(
            f"Invalid backend: {config.backend!r}. "
            f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}.",
        )
    if not config.agent:
        raise EmptyAgentError("agent must be a non-empty string.")
    if not config.tasks_dir:
        raise EmptyTasksDirError("tasksDir must be a non-empty string.")


def parse_notify_setting(value: object) -> NotifySetting:
    """Interpret the polymorphic ``notify`` value (boolean or string)."""

    if isinstance(value, bool):
        return NotifySetting.ALL if value else NotifySetting.DISABLED
    if value == NotifySetting.ALL.value:
        return NotifySetting.ALL
    if value == NotifySetting.INDIVIDUAL.value:
        return NotifySetting.INDIVIDUAL
    return NotifySetting.DISABLED


def serialize_notify_setting(setting: NotifySetting) -> bool | str:
    if setting is NotifySetting.DISABLED:
        return False
    return setting.value


def write_config(config: OdyConfig, path: Path) -> None:
    """Persist configuration as indented JSON with a trailing newline."""

    validate_config(config)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(config_to_document(config), indent=2, ensure_ascii=False)
    path.write_text(payload + "\n", "utf-8")
    logger.info("Configuration written to %s", path)


@dataclass(slots=True)
class ConfigResolver:
    """Resolve configuration once per invocation and cache the outcome."""

    project_dir: Path
    home: Path | None = None
    _resolved: bool = field(default=False, init=False, repr=False)
    _config: OdyConfig | None = field(default=None, init=False, repr=False)

    @property
    def paths(self) -> ProjectPaths:
        return ProjectPaths(self.project_dir)

    def resolve(self) -> OdyConfig | None:
        """Return the resolved configuration, or ``None`` when no document exists."""

        if not self._resolved:
            self._config = resolve_config(
                global_config_candidates(self.home),
                self.paths.config_path,
            )
            self._resolved = True
        return self._config

    def require(self) -> OdyConfig:
        """Return the configuration or raise :class:`ConfigNotFoundError`."""

        config = self.resolve()
        if config is None:
            raise ConfigNotFoundError("No configuration found. Run `ody init` first.")
        return config


def _load_first_document(candidates: Iterable[Path]) -> dict[str, Any] | None:
    for candidate in candidates:
        if candidate.is_file():
            logger.debug("Using global configuration %s", candidate)
            return _load_document(candidate)
    return None


def _load_document(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as error:
        raise ConfigDocumentError(f"Invalid JSON in {path}: {error}") from error
    if not isinstance(payload, dict):
        raise ConfigDocumentError(f"Configuration document {path} must be a JSON object.")
    return payload


def _typed(document: Mapping[str, Any], key: str, expected: type, *, default: Any) -> Any:
    value = document.get(key)
    if value is None:
        return default
    # bool is an int subclass; keep numeric fields strictly numeric
    if expected is int and isinstance(value, bool):
        raise ConfigDocumentError(f"{key} must be an integer, got {value!r}.")
    if not isinstance(value, expected):
        raise ConfigDocumentError(
            f"{key} must be of type {expected.__name__}, got {type(value).__name__}.",
        )
    return value
