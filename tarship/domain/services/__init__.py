"""
Domain Services Package

Architectural Intent:
- Stateless policies the pipeline applies per host: retry, backup rotation, progress
"""

from tarship.domain.services.backup_manager import BackupManager
from tarship.domain.services.progress import HostLogAdapter, ProgressReporter, format_progress
from tarship.domain.services.retry import RetryExhausted, RetryPolicy, retry_async

__all__ = [
    "BackupManager",
    "HostLogAdapter",
    "ProgressReporter",
    "format_progress",
    "RetryExhausted",
    "RetryPolicy",
    "retry_async",
]
