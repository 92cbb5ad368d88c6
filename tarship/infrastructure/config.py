"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to every deployment setting
- Falls back to sensible defaults when the config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses; unknown keys are ignored
- Hosts are listed as objects (credentials included) or as user@host:port strings
"""

from __future__ import annotations
import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional
from tarship.application.dtos.deployment_dtos import DEFAULT_BUILD_COMMAND, DeployRequest
from tarship.application.hooks.hook_bus import HookSet
from tarship.domain.value_objects.target_host import TargetHost

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "tarship.json"


@dataclass(frozen=True)
class BuildConfig:
    """Local build step."""
    command: str = DEFAULT_BUILD_COMMAND
    skip: bool = False
    project_root: str = ""


@dataclass(frozen=True)
class ArtifactConfig:
    """Local build output and the archive made from it."""
    local_dir: str = "dist"
    local_archive: str = "dist.tar.gz"
    remove_local_archive: bool = True


@dataclass(frozen=True)
class RemoteConfig:
    """Remote paths on every target host."""
    archive: str = ""
    dir: str = ""
    cwd: str = "/"
    backup_dir: str = ""
    max_backup_count: int = 5
    activation_command: str = ""


@dataclass(frozen=True)
class FleetConfig:
    """Fleet targets and scheduling."""
    targets: tuple[str, ...] = ()
    concurrent: bool = True
    interactive: bool = False
    retry_count: int = 3
    retry_delay: float = 0.3
    connect_timeout: int = 30


@dataclass(frozen=True)
class TarshipConfig:
    """Root configuration for tarship."""
    build: BuildConfig = field(default_factory=BuildConfig)
    artifact: ArtifactConfig = field(default_factory=ArtifactConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    fleet: FleetConfig = field(default_factory=FleetConfig)
    hosts: tuple[TargetHost, ...] = ()
    log_level: str = "WARNING"

    def all_hosts(self) -> tuple[TargetHost, ...]:
        return self.hosts + tuple(TargetHost.parse(t) for t in self.fleet.targets)


_SECTIONS = ("build", "artifact", "remote", "fleet")
_TOP_LEVEL = ("log_level",)


def _env_override(data: dict, prefix: str = "TARSHIP") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern TARSHIP_SECTION_KEY.
    For example: TARSHIP_REMOTE_BACKUP_DIR=/srv/backups,
    TARSHIP_FLEET_TARGETS=deploy@10.0.0.1,deploy@10.0.0.2, TARSHIP_LOG_LEVEL=INFO
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _TOP_LEVEL:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            data.setdefault(section, {})[field_name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    for f in dataclasses.fields(cls):
        if f.name not in filtered:
            continue
        val = filtered[f.name]

        # Comma-separated strings become tuples
        if f.type == "tuple[str, ...]":
            if isinstance(val, str):
                filtered[f.name] = tuple(v.strip() for v in val.split(",") if v.strip())
            elif isinstance(val, list):
                filtered[f.name] = tuple(val)
        elif isinstance(val, str):
            if f.type == "int":
                filtered[f.name] = int(val)
            elif f.type == "float":
                filtered[f.name] = float(val)
            elif f.type == "bool":
                filtered[f.name] = val.lower() in ("true", "1", "yes")

    return cls(**filtered)


def _build_hosts(entries: Iterable[Any]) -> tuple[TargetHost, ...]:
    hosts = []
    for entry in entries:
        if isinstance(entry, str):
            hosts.append(TargetHost.parse(entry))
        else:
            hosts.append(TargetHost.from_dict(entry))
    return tuple(hosts)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "TARSHIP",
) -> TarshipConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (TARSHIP_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to tarship.json in CWD.
        env_prefix: Environment variable prefix. Defaults to TARSHIP.
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    return TarshipConfig(
        build=_build_sub_config(BuildConfig, data.get("build", {})),
        artifact=_build_sub_config(ArtifactConfig, data.get("artifact", {})),
        remote=_build_sub_config(RemoteConfig, data.get("remote", {})),
        fleet=_build_sub_config(FleetConfig, data.get("fleet", {})),
        hosts=_build_hosts(data.get("hosts", [])),
        log_level=data.get("log_level", "WARNING"),
    )


def build_request(
    config: TarshipConfig,
    hooks: Optional[HookSet] = None,
    targets: Optional[Iterable[str]] = None,
) -> DeployRequest:
    """Turn a loaded config into a DeployRequest. `targets` replaces the configured hosts."""
    hosts = (
        tuple(TargetHost.parse(t) for t in targets)
        if targets is not None
        else config.all_hosts()
    )
    return DeployRequest(
        hosts=hosts,
        build_command=config.build.command,
        skip_build=config.build.skip,
        project_root=config.build.project_root or None,
        local_dir=config.artifact.local_dir,
        local_archive=config.artifact.local_archive,
        remove_local_archive=config.artifact.remove_local_archive,
        remote_archive=config.remote.archive,
        remote_dir=config.remote.dir,
        remote_cwd=config.remote.cwd,
        remote_backup_dir=config.remote.backup_dir or None,
        max_backup_count=config.remote.max_backup_count,
        activation_command=config.remote.activation_command or None,
        concurrent=config.fleet.concurrent,
        interactive=config.fleet.interactive,
        retry_count=config.fleet.retry_count,
        retry_delay=config.fleet.retry_delay,
        hooks=hooks or HookSet(),
    )
