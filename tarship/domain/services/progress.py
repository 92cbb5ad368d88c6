"""
Progress and Host Logging

Architectural Intent:
- Transfer progress is throttled to one DEBUG line per step
- Every per-host log line is prefixed with the host label and carries it as a record attribute
- Accepts plain loggers and adapters alike
"""

import logging
from typing import Union

Log = Union[logging.Logger, logging.LoggerAdapter]

_MB = 1024 * 1024


def format_progress(current: int, total: int) -> str:
    """Renders '1.50MB / 3.00MB (50%)'."""
    percent = int(current * 100 / total) if total else 100
    return f"{current / _MB:.2f}MB / {total / _MB:.2f}MB ({percent}%)"


class ProgressReporter:
    """Transfer callback that logs every `step` percent at DEBUG."""

    def __init__(self, log: Log, label: str, step: int = 10) -> None:
        self._log = log
        self._label = label
        self._step = step
        self._next = 0

    def __call__(self, current: int, total: int) -> None:
        percent = int(current * 100 / total) if total else 100
        if percent < self._next:
            return
        self._log.debug("%s %s", self._label, format_progress(current, total))
        self._next = (percent // self._step + 1) * self._step


class HostLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with `[host]` and exposes `host` on the record."""

    def __init__(self, log: Log, host: str) -> None:
        super().__init__(log, {"host": host})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("host", self.extra["host"])
        kwargs["extra"] = extra
        return f"[{self.extra['host']}] {msg}", kwargs
