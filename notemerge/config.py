"""Configuration loading for the notemerge service.

Settings come from ``NOTEMERGE_*`` environment variables. A ``.env`` file in
the working directory fills in anything the environment leaves unset; it is
read, never exported.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_INPUT_BYTES = 1_048_576
DEFAULT_MAX_DEPTH = 128
DEFAULT_LOCK_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "INFO"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class MergeLimits:
    """Ceilings applied by the merge engine to a single call."""

    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES
    max_depth: int = DEFAULT_MAX_DEPTH


@dataclass(frozen=True)
class AppConfig:
    library_path: Path
    require_user_header: bool
    service_token: str | None
    limits: MergeLimits = field(default_factory=MergeLimits)
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def _parse_dotenv(dotenv_path: Path) -> dict[str, str]:
    if not dotenv_path.is_file():
        return {}
    try:
        content = dotenv_path.read_text(encoding="utf-8")
    except OSError:
        return {}

    values: dict[str, str] = {}
    for line in content.splitlines():
        entry = line.strip()
        if entry.startswith("export "):
            entry = entry[len("export ") :].lstrip()
        if not entry or entry.startswith("#") or "=" not in entry:
            continue
        name, _, value = entry.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        values.setdefault(name.strip(), value)
    return values


class _Settings:
    """Typed lookups over the environment with a ``.env`` fallback."""

    def __init__(self, dotenv_path: Path) -> None:
        self._dotenv = _parse_dotenv(dotenv_path)

    def text(self, key: str) -> str | None:
        raw_value = os.environ.get(key)
        if raw_value is None:
            raw_value = self._dotenv.get(key)
        if raw_value is None:
            return None
        return raw_value.strip() or None

    def flag(self, key: str, default: bool) -> bool:
        raw_value = self.text(key)
        if raw_value is None:
            return default
        if raw_value.lower() in _TRUE_VALUES:
            return True
        if raw_value.lower() in _FALSE_VALUES:
            return False
        raise ConfigError(f"{key} must be a boolean value.")

    def positive_int(self, key: str, default: int) -> int:
        raw_value = self.text(key)
        if raw_value is None:
            return default
        try:
            value = int(raw_value)
        except ValueError as exc:
            raise ConfigError(f"{key} must be an integer.") from exc
        if value <= 0:
            raise ConfigError(f"{key} must be a positive integer.")
        return value

    def positive_float(self, key: str, default: float) -> float:
        raw_value = self.text(key)
        if raw_value is None:
            return default
        try:
            value = float(raw_value)
        except ValueError as exc:
            raise ConfigError(f"{key} must be a number.") from exc
        if value <= 0:
            raise ConfigError(f"{key} must be a positive number.")
        return value

    def choice(self, key: str, choices: tuple[str, ...], default: str) -> str:
        raw_value = self.text(key)
        if raw_value is None:
            return default
        value = raw_value.upper()
        if value not in choices:
            raise ConfigError(f"{key} must be one of {', '.join(choices)}.")
        return value


def load_config() -> AppConfig:
    """Load required configuration from the environment."""
    cwd = Path.cwd()
    settings = _Settings(cwd / ".env")

    raw_path = settings.text("NOTEMERGE_LIBRARY_PATH")
    if raw_path is None:
        raise ConfigError(
            "NOTEMERGE_LIBRARY_PATH is required; set it to the library root path."
        )
    library_path = Path(raw_path)
    if not library_path.is_absolute():
        library_path = cwd / library_path

    limits = MergeLimits(
        max_input_bytes=settings.positive_int(
            "NOTEMERGE_MAX_INPUT_BYTES", DEFAULT_MAX_INPUT_BYTES
        ),
        max_depth=settings.positive_int("NOTEMERGE_MAX_DEPTH", DEFAULT_MAX_DEPTH),
    )

    return AppConfig(
        library_path=library_path.resolve(),
        require_user_header=settings.flag("NOTEMERGE_REQUIRE_USER_HEADER", True),
        service_token=settings.text("NOTEMERGE_SERVICE_TOKEN"),
        limits=limits,
        lock_timeout=settings.positive_float(
            "NOTEMERGE_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT
        ),
        log_level=settings.choice(
            "NOTEMERGE_LOG_LEVEL", _LOG_LEVELS, DEFAULT_LOG_LEVEL
        ),
    )
