"""
Host Session Module

Architectural Intent:
- One HostSession per TargetHost; it exclusively owns that host's transport handle
- Status transitions are enforced by domain methods (PENDING -> READY -> SUCCEEDED, or FAILED)
- The handle is released exactly once, at pipeline teardown, whatever happened before
- Sessions never share mutable state; results leave as immutable HostOutcome snapshots
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional
from tarship.domain.errors import DeployError
from tarship.domain.ports.transport_port import TransportSession
from tarship.domain.value_objects.backup_record import BackupResult
from tarship.domain.value_objects.target_host import TargetHost

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    PENDING = auto()
    READY = auto()
    SUCCEEDED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class HostOutcome:
    host: TargetHost
    index: int
    status: SessionStatus
    attempts: int = 0
    error: Optional[DeployError] = None
    backup: Optional[BackupResult] = None

    @property
    def label(self) -> str:
        return self.host.label

    @property
    def succeeded(self) -> bool:
        return self.status == SessionStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == SessionStatus.FAILED


class HostSession:
    __slots__ = (
        "_host",
        "_index",
        "_status",
        "_handle",
        "_attempts",
        "_error",
        "_backup",
        "_closed",
    )

    def __init__(self, host: TargetHost, index: int) -> None:
        self._host = host
        self._index = index
        self._status = SessionStatus.PENDING
        self._handle: Optional[TransportSession] = None
        self._attempts = 0
        self._error: Optional[DeployError] = None
        self._backup: Optional[BackupResult] = None
        self._closed = False

    @property
    def host(self) -> TargetHost:
        return self._host

    @property
    def index(self) -> int:
        return self._index

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def handle(self) -> Optional[TransportSession]:
        return self._handle

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def error(self) -> Optional[DeployError]:
        return self._error

    @property
    def backup(self) -> Optional[BackupResult]:
        return self._backup

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_ready(self) -> bool:
        return self._status == SessionStatus.READY

    def attach(self, handle: TransportSession) -> None:
        if self._handle is not None:
            raise ValueError(f"Session for {self._host.label} already has a transport handle")
        if self._closed:
            raise ValueError(f"Session for {self._host.label} is already closed")
        self._handle = handle

    def record_attempts(self, attempts: int) -> None:
        self._attempts = attempts

    def record_backup(self, result: BackupResult) -> None:
        self._backup = result

    def mark_ready(self) -> None:
        if self._status != SessionStatus.PENDING:
            raise ValueError("Session can only become READY from PENDING")
        if self._handle is None:
            raise ValueError("Session cannot be READY without a transport handle")
        self._status = SessionStatus.READY

    def succeed(self) -> None:
        if self._status != SessionStatus.READY:
            raise ValueError("Session must be READY to succeed")
        self._status = SessionStatus.SUCCEEDED

    def fail(self, error: DeployError) -> None:
        if self._status == SessionStatus.SUCCEEDED:
            raise ValueError("A succeeded session cannot fail")
        if self._error is None:
            self._error = error.with_host(self._host.label)
        self._status = SessionStatus.FAILED

    async def close(self) -> bool:
        """
        Releases the transport handle. Returns True only on the call that
        actually closed it; close-time errors are logged and swallowed.
        """
        if self._closed or self._handle is None:
            return False
        self._closed = True
        try:
            await self._handle.close()
        except Exception as e:
            logger.debug("Closing session for %s failed: %s", self._host.label, e)
        return True

    def outcome(self) -> HostOutcome:
        return HostOutcome(
            host=self._host,
            index=self._index,
            status=self._status,
            attempts=self._attempts,
            error=self._error,
            backup=self._backup,
        )

    def __repr__(self) -> str:
        return (
            f"HostSession(host={self._host}, index={self._index}, "
            f"status={self._status}, attempts={self._attempts}, closed={self._closed})"
        )
