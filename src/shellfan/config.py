"""Configuration loader for shellfan."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError


@dataclass
class AuthConfig:
    """How to authenticate to a target.

    ``artifact`` is the literal password for ``password`` and a private key
    path for ``pki``.
    """

    method: str
    artifact: str = ""


@dataclass
class TargetConfig:
    """Configuration for a single deployment target."""

    host: str
    auth: AuthConfig
    user: str = ""

    @property
    def label(self) -> str:
        return f"{self.user}@{self.host}"

    def to_dict(self) -> dict[str, Any]:
        raw: dict[str, Any] = {}
        if self.user:
            raw["username"] = self.user
        raw["host"] = self.host
        raw["auth"] = {"method": self.auth.method, "artifact": self.auth.artifact}
        return raw


@dataclass
class Settings:
    """Execution-wide settings, from the command line and/or a YAML file."""

    targets: Path = field(default_factory=lambda: Path("target.json"))
    script: Path = field(default_factory=lambda: Path("script.sh"))
    stream_output: bool = False
    max_parallel: int | None = None  # None = one task per target, all at once
    task_timeout: float | None = None
    connect_timeout: float | None = 30
    known_hosts: Path | None = None  # None disables host key checking
    source_path: Path | None = None  # Path to the settings file, if any


def load_targets(targets_path: str | Path) -> list[TargetConfig]:
    """Load and validate the JSON target list.

    Any malformed record rejects the whole file.
    """
    targets_path = Path(targets_path)

    if not targets_path.exists():
        raise FileNotFoundError(f"Target file not found: {targets_path}")

    with open(targets_path, encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"Couldn't parse targets file {targets_path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigError("Targets file must contain a JSON array of targets")

    return [_parse_target(i, target_raw) for i, target_raw in enumerate(raw)]


def dump_targets(targets: list[TargetConfig]) -> str:
    """Serialize targets to the JSON form read by :func:`load_targets`."""
    return json.dumps([target.to_dict() for target in targets], indent=2)


def load_script(script_path: str | Path) -> bytes:
    """Read the script once; its bytes are shared by every task."""
    script_path = Path(script_path)

    if not script_path.exists():
        raise FileNotFoundError(f"Script file not found: {script_path}")

    return script_path.read_bytes()


def load_settings(settings_path: str | Path) -> Settings:
    """Load execution settings from a YAML file."""
    settings_path = Path(settings_path).expanduser().resolve()

    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with open(settings_path, encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Couldn't parse settings file {settings_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError("Settings file must contain a mapping")

    settings = _parse_settings(raw, settings_path.parent)
    settings.source_path = settings_path
    return settings


def _parse_target(index: int, target_raw: Any) -> TargetConfig:
    """Parse a single target record."""
    if not isinstance(target_raw, dict):
        raise ConfigError(f"Target #{index} must be an object")

    host = target_raw.get("host")
    if not isinstance(host, str) or not host:
        raise ConfigError(f"Target #{index} must have a non-empty 'host' field")

    user = target_raw.get("username", "")
    if not isinstance(user, str):
        raise ConfigError(f"Target #{index} has a non-string 'username'")

    auth_raw = target_raw.get("auth")
    if not isinstance(auth_raw, dict):
        raise ConfigError(f"Target #{index} must have an 'auth' object")

    method = auth_raw.get("method")
    if not isinstance(method, str):
        raise ConfigError(f"Target #{index} must have a string 'auth.method'")

    # An empty password is legal, so only the type is checked
    artifact = auth_raw.get("artifact")
    if not isinstance(artifact, str):
        raise ConfigError(f"Target #{index} must have a string 'auth.artifact'")

    return TargetConfig(
        host=host,
        auth=AuthConfig(method=method, artifact=artifact),
        user=user,
    )


def _parse_settings(raw: dict[str, Any], base_dir: Path) -> Settings:
    """Parse raw YAML data into a Settings object."""
    known = {f.name for f in fields(Settings)} - {"source_path"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

    defaults = Settings()

    stream_output = raw.get("stream_output", defaults.stream_output)
    if not isinstance(stream_output, bool):
        raise ConfigError("'stream_output' must be true or false")

    return Settings(
        targets=_parse_path(raw.get("targets", defaults.targets), base_dir, "targets"),
        script=_parse_path(raw.get("script", defaults.script), base_dir, "script"),
        stream_output=stream_output,
        max_parallel=_parse_limit(raw.get("max_parallel"), "max_parallel", integer=True),
        task_timeout=_parse_limit(raw.get("task_timeout"), "task_timeout"),
        connect_timeout=_parse_limit(
            raw.get("connect_timeout", defaults.connect_timeout), "connect_timeout"
        ),
        known_hosts=(
            _parse_path(raw["known_hosts"], base_dir, "known_hosts")
            if raw.get("known_hosts") is not None
            else None
        ),
    )


def _parse_path(value: Any, base_dir: Path, name: str) -> Path:
    if not isinstance(value, (str, Path)) or not str(value):
        raise ConfigError(f"'{name}' must be a path")
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def _parse_limit(value: Any, name: str, integer: bool = False) -> Any:
    """Validate an optional positive number."""
    if value is None:
        return None
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{name}' must be a number")
    if integer and not isinstance(value, int):
        raise ConfigError(f"'{name}' must be an integer")
    if value <= 0:
        raise ConfigError(f"'{name}' must be positive")
    return value
