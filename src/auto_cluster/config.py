"""Config file loading and auto-discovery for auto-cluster.

Searches for ``auto-cluster.yaml`` in the current directory and parent
directories (then ``/etc/auto-cluster``), parses it, validates every
archetype, and resolves relative paths against the config file's location.
The pull secret is read once here so the controller never touches it again.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from auto_cluster.models import ArchetypeSpec, parse_duration

CONFIG_FILENAME = "auto-cluster.yaml"
SYSTEM_CONFIG_DIR = Path("/etc/auto-cluster")

DEFAULT_INTERVAL = timedelta(minutes=15)


class ConfigError(Exception):
    """Raised when the configuration is missing, unreadable or invalid."""


def redact(value: str) -> str:
    """Hide a secret while still showing whether it is set."""
    return "REDACTED_NOT_EMPTY" if value else ""


@dataclass(frozen=True)
class AutoClusterConfig:
    """Parsed auto-cluster configuration."""

    archetypes: tuple[ArchetypeSpec, ...] = ()
    state_dir: Path = Path("./state")
    pull_secret_path: Path | None = None
    pull_secret: str = field(default="", repr=False)
    config_path: Path | None = None
    base_domain: str = "devcluster.openshift.com"
    region: str = "us-east-1"
    install_tool: str = "openshift-install"
    oc_path: str = "oc"
    helm_path: str = "helm"
    git_path: str = "git"
    tool_timeout: float | None = None
    interval: timedelta = DEFAULT_INTERVAL
    fail_fast: bool = False
    dry_run: bool = False
    notifications: dict[str, Any] = field(default_factory=dict)
    aws: dict[str, Any] = field(default_factory=dict)

    def redacted(self) -> dict[str, Any]:
        """A printable view of the config with secrets removed."""
        return {
            "config_path": str(self.config_path) if self.config_path else None,
            "archetypes": [
                a.model_dump(mode="json", by_alias=True) for a in self.archetypes
            ],
            "stateDir": str(self.state_dir),
            "pullSecretPath": str(self.pull_secret_path) if self.pull_secret_path else None,
            "pullSecret": redact(self.pull_secret),
            "baseDomain": self.base_domain,
            "region": self.region,
            "installTool": self.install_tool,
            "toolTimeout": self.tool_timeout,
            "interval": self.interval.total_seconds(),
            "failFast": self.fail_fast,
            "dryRun": self.dry_run,
            "notifications": {
                k: (redact(str(v)) if "url" in k.lower() or "header" in k.lower() else v)
                for k, v in self.notifications.items()
            },
            "aws": dict(self.aws),
        }

    def with_overrides(self, **changes: Any) -> AutoClusterConfig:
        """Return a copy with CLI overrides applied (``None`` values are ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``auto-cluster.yaml`` found, then the system-wide
    file in ``/etc/auto-cluster``, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    system = SYSTEM_CONFIG_DIR / CONFIG_FILENAME
    if system.is_file():
        return system
    return None


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> AutoClusterConfig:
    """Load and validate an auto-cluster config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories, then ``/etc/auto-cluster``.

    Unlike optional tooling configs there is no usable default: a missing
    file is a ``ConfigError``.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        raise ConfigError(
            f"No {CONFIG_FILENAME} found in the current directory, its parents, "
            f"or {SYSTEM_CONFIG_DIR}"
        )

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> AutoClusterConfig:
    """Read and parse a YAML config file, resolving relative paths."""
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        )

    base = config_path.parent

    def _required(key: str) -> Any:
        val = data.get(key)
        if val is None or val == "":
            raise ConfigError(f"Missing required field '{key}' in {config_path}")
        return val

    def _resolve(val: Any) -> Path:
        return (base / str(val)).resolve()

    archetypes = _parse_archetypes(_required("archetypes"), config_path)

    pull_secret_path = _resolve(_required("pullSecretPath"))
    try:
        pull_secret = pull_secret_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigError(f"Failed to read pull secret file {pull_secret_path}: {e}") from e

    try:
        interval = parse_duration(data.get("interval", DEFAULT_INTERVAL))
        tool_timeout = data.get("toolTimeout")
        if tool_timeout is not None:
            tool_timeout = parse_duration(tool_timeout).total_seconds()
    except ValueError as e:
        raise ConfigError(f"Invalid duration in {config_path}: {e}") from e

    if interval <= timedelta(0):
        raise ConfigError(f"'interval' must be positive in {config_path}")

    notifications = data.get("notifications") or {}
    aws = data.get("aws") or {}
    if not isinstance(notifications, dict) or not isinstance(aws, dict):
        raise ConfigError(f"'notifications' and 'aws' must be mappings in {config_path}")

    return AutoClusterConfig(
        archetypes=archetypes,
        state_dir=_resolve(_required("stateDir")),
        pull_secret_path=pull_secret_path,
        pull_secret=pull_secret,
        config_path=config_path,
        base_domain=data.get("baseDomain", "devcluster.openshift.com"),
        region=data.get("region", "us-east-1"),
        install_tool=data.get("installTool", "openshift-install"),
        oc_path=data.get("ocPath", "oc"),
        helm_path=data.get("helmPath", "helm"),
        git_path=data.get("gitPath", "git"),
        tool_timeout=tool_timeout,
        interval=interval,
        fail_fast=bool(data.get("failFast", False)),
        dry_run=bool(data.get("dryRun", False)),
        notifications=_snake_keys(notifications),
        aws=_snake_keys(aws),
    )


def _parse_archetypes(raw: Any, config_path: Path) -> tuple[ArchetypeSpec, ...]:
    if not isinstance(raw, list) or not raw:
        raise ConfigError(f"'archetypes' must be a non-empty list in {config_path}")

    specs: list[ArchetypeSpec] = []
    seen: set[str] = set()
    for i, entry in enumerate(raw):
        try:
            spec = ArchetypeSpec.model_validate(entry)
        except ValidationError as e:
            prefix = entry.get("namePrefix", "?") if isinstance(entry, dict) else "?"
            raise ConfigError(
                f"Invalid archetype at index {i} (namePrefix {prefix}) in {config_path}: {e}"
            ) from e
        if spec.name_prefix in seen:
            raise ConfigError(f"Duplicate archetype namePrefix: {spec.name_prefix}")
        for other in seen:
            shorter, longer = sorted((other, spec.name_prefix), key=len)
            if longer.startswith(shorter):
                # The shorter prefix would claim the longer one's clusters.
                raise ConfigError(
                    f"Archetype namePrefix {longer} overlaps namePrefix {shorter} "
                    f"in {config_path}"
                )
        seen.add(spec.name_prefix)
        specs.append(spec)
    return tuple(specs)


def _snake_keys(data: dict[str, Any]) -> dict[str, Any]:
    """``slackWebhookUrl`` -> ``slack_webhook_url`` (top level only)."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in str(key))
        out[snake.lstrip("_")] = value
    return out
