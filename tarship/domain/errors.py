"""
Deployment Errors

Architectural Intent:
- Closed taxonomy of failure kinds shared by every stage of the pipeline
- Each kind maps to exactly one propagation scope (whole run, one host, or warning only)
- A stage caps how far its errors reach: a host stage never fails the whole run,
  and a warning-only stage never fails anything
- Host attribution travels with the error so multi-host logs stay readable
"""

from __future__ import annotations
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    CONFIGURATION = "configuration"
    BUILD = "build"
    COMPRESS = "compress"
    CONNECT = "connect"
    UPLOAD = "upload"
    ACTIVATE = "activate"
    BACKUP = "backup"
    CLEANUP = "cleanup"
    UNKNOWN = "unknown"

    @property
    def scope(self) -> "ErrorScope":
        return _SCOPES[self]


class ErrorScope(Enum):
    PIPELINE = "pipeline"
    HOST = "host"
    SOFT = "soft"

    def within(self, ceiling: "ErrorScope") -> "ErrorScope":
        """The narrower of this scope and `ceiling`."""
        return min(self, ceiling, key=_RANK.__getitem__)


_RANK = {ErrorScope.SOFT: 0, ErrorScope.HOST: 1, ErrorScope.PIPELINE: 2}


_SCOPES: dict[ErrorKind, ErrorScope] = {
    ErrorKind.CONFIGURATION: ErrorScope.PIPELINE,
    ErrorKind.BUILD: ErrorScope.PIPELINE,
    ErrorKind.COMPRESS: ErrorScope.PIPELINE,
    ErrorKind.CONNECT: ErrorScope.HOST,
    ErrorKind.UPLOAD: ErrorScope.HOST,
    ErrorKind.ACTIVATE: ErrorScope.HOST,
    ErrorKind.BACKUP: ErrorScope.SOFT,
    ErrorKind.CLEANUP: ErrorScope.SOFT,
    # unclassified errors reach as far as the stage they surface in allows
    ErrorKind.UNKNOWN: ErrorScope.PIPELINE,
}

_missing = set(ErrorKind) - set(_SCOPES)
if _missing:
    raise RuntimeError(f"ErrorKind members without a scope: {sorted(k.name for k in _missing)}")


class DeployError(Exception):
    """A classified deployment failure."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        host: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.host = host
        self.attempts = attempts

    def with_host(self, host: str) -> "DeployError":
        if self.host is None:
            self.host = host
        return self

    def __str__(self) -> str:
        host = f"[{self.host}] " if self.host else ""
        return f"DeployError({self.kind.value}): {host}{self.message}"


class DeploymentCancelled(Exception):
    """Raised when the operator declines an interactive confirmation."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Deployment cancelled before stage '{stage}'")
        self.stage = stage


def as_deploy_error(
    error: BaseException, kind: ErrorKind, host: Optional[str] = None
) -> DeployError:
    """Return `error` unchanged if already classified, otherwise wrap it."""
    if isinstance(error, DeployError):
        if host:
            error.with_host(host)
        return error
    return DeployError(kind, str(error) or type(error).__name__, cause=error, host=host)
