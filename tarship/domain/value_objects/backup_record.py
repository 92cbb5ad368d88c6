"""
Backup Record Value Object

Architectural Intent:
- A dated backup archive living in a host's backup directory
- The file name encodes the local calendar day it was taken on
- Ordering for retention is by remote modification time, not by name
"""

import posixpath
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

BACKUP_SUFFIX = ".tar.gz"

_BACKUP_NAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})\.tar\.gz$")


def backup_name_for(day: date) -> str:
    return f"{day.isoformat()}{BACKUP_SUFFIX}"


def is_backup_name(filename: str) -> bool:
    return bool(_BACKUP_NAME_RE.match(filename))


class BackupStatus(Enum):
    COPIED = "copied"
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class BackupResult:
    status: BackupStatus
    path: str
    pruned: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.status in (BackupStatus.COPIED, BackupStatus.UPLOADED)


@dataclass(frozen=True)
class BackupRecord:
    filename: str
    mtime: float
    directory: str = ""

    @property
    def path(self) -> str:
        return posixpath.join(self.directory, self.filename)

    @property
    def day(self) -> Optional[date]:
        m = _BACKUP_NAME_RE.match(self.filename)
        if not m:
            return None
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
