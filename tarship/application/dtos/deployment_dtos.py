"""
Deployment DTOs

Architectural Intent:
- Data Transfer Objects for the deploy use case boundary
- DeployRequest is immutable and validated once, before any stage runs
- DeploySummary is produced by reducing per-host outcomes after the run
"""

from __future__ import annotations
import posixpath
import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple
from tarship.application.hooks.hook_bus import HookSet
from tarship.domain.entities.host_session import HostOutcome
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.value_objects.target_host import TargetHost

DEFAULT_BUILD_COMMAND = "npm run build"


def to_unix_path(path: str) -> str:
    return path.replace("\\", "/")


def _normalize_remote(path: str) -> str:
    return posixpath.normpath(to_unix_path(path))


@dataclass(frozen=True)
class DeployRequest:
    hosts: Tuple[TargetHost, ...]
    local_dir: str
    local_archive: str
    remote_archive: str
    remote_dir: str
    build_command: str = DEFAULT_BUILD_COMMAND
    remote_backup_dir: Optional[str] = None
    max_backup_count: int = 5
    retry_count: int = 3
    retry_delay: float = 0.3
    skip_build: bool = False
    interactive: bool = False
    concurrent: bool = True
    remote_cwd: str = "/"
    remove_local_archive: bool = True
    activation_command: Optional[str] = None
    project_root: Optional[str] = None
    hooks: HookSet = field(default_factory=HookSet)

    def __post_init__(self) -> None:
        object.__setattr__(self, "hosts", tuple(self.hosts))

    def validate(self) -> None:
        """
        Raises DeployError(CONFIGURATION) for missing or contradictory options.
        Pure: the same request always yields the same error.
        """
        missing = [
            name
            for name in ("local_dir", "local_archive", "remote_archive", "remote_dir")
            if not getattr(self, name)
        ]
        if missing:
            raise DeployError(
                ErrorKind.CONFIGURATION,
                f"Missing required option(s): {', '.join(missing)}",
            )
        if not self.hosts:
            raise DeployError(ErrorKind.CONFIGURATION, "At least one target host is required")
        if self.retry_count < 1:
            raise DeployError(
                ErrorKind.CONFIGURATION,
                f"retry_count must be at least 1, got {self.retry_count}",
            )
        if self.retry_delay < 0:
            raise DeployError(
                ErrorKind.CONFIGURATION,
                f"retry_delay cannot be negative, got {self.retry_delay}",
            )
        if self.max_backup_count < 0:
            raise DeployError(
                ErrorKind.CONFIGURATION,
                f"max_backup_count cannot be negative, got {self.max_backup_count}",
            )
        if _normalize_remote(self.remote_dir) == _normalize_remote(
            posixpath.dirname(to_unix_path(self.remote_archive))
        ):
            raise DeployError(
                ErrorKind.CONFIGURATION,
                "remote_dir must not be the directory of remote_archive, "
                "because deployment deletes remote_dir before extracting",
            )

    @property
    def resolved_activation_command(self) -> str:
        if self.activation_command:
            command = self.activation_command
        else:
            cwd = shlex.quote(to_unix_path(self.remote_cwd or "/"))
            target = shlex.quote(to_unix_path(self.remote_dir))
            archive = shlex.quote(to_unix_path(self.remote_archive))
            command = (
                f"cd {cwd} && "
                f"rm -rf {target} && "
                f"mkdir -p {target} && "
                f"tar -xzf {archive} -C {target} && "
                f"rm -rf {archive} && "
                "exit"
            )
        # the shell channel only runs a line once it sees the newline
        return command if command.endswith("\n") else command + "\n"


class Outcome(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


@dataclass(frozen=True)
class DeploySummary:
    outcome: Outcome
    hosts: Tuple[HostOutcome, ...] = ()
    elapsed: float = 0.0
    cancelled_at: Optional[str] = None
    error: Optional[DeployError] = None

    @property
    def total(self) -> int:
        return len(self.hosts)

    @property
    def succeeded(self) -> int:
        return sum(1 for h in self.hosts if h.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for h in self.hosts if h.failed)

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.SUCCESS, Outcome.PARTIAL)

    @classmethod
    def reduce(
        cls,
        outcomes: Iterable[HostOutcome],
        elapsed: float,
        cancelled_at: Optional[str] = None,
    ) -> "DeploySummary":
        hosts = tuple(sorted(outcomes, key=lambda o: o.index))
        succeeded = sum(1 for h in hosts if h.succeeded)
        if cancelled_at is not None:
            outcome = Outcome.CANCELLED
        elif hosts and succeeded == len(hosts):
            outcome = Outcome.SUCCESS
        elif succeeded == 0:
            outcome = Outcome.FAILED
        else:
            outcome = Outcome.PARTIAL
        return cls(outcome=outcome, hosts=hosts, elapsed=elapsed, cancelled_at=cancelled_at)

    def render(self) -> str:
        rows = [("Host", "Status", "Attempts", "Detail")]
        for h in self.hosts:
            if h.error is not None:
                detail = str(h.error)
            elif h.backup is not None:
                detail = f"backup {h.backup.status.value}"
            else:
                detail = ""
            rows.append((h.label, h.status.name, str(h.attempts), detail))

        widths = [max(len(row[i]) for row in rows) for i in range(3)]
        lines = [
            "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row[:3])) + "  " + row[3]
            for row in rows
        ]
        lines.insert(1, "-" * (sum(widths) + 6 + len("Detail")))
        lines.append(
            f"Total: {self.total}  Succeeded: {self.succeeded}  "
            f"Failed: {self.failed}  Elapsed: {self.elapsed:.2f}s  "
            f"Outcome: {self.outcome.value}"
        )
        return "\n".join(line.rstrip() for line in lines)
