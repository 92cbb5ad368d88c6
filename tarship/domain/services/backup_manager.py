"""
Backup Manager

Architectural Intent:
- Keeps one dated copy of the shipped archive per host per local calendar day
- Prefers a remote-side copy of the archive that was just uploaded (no re-transfer)
- Falls back to uploading the local archive when the remote copy is impossible
- Backup never fails the upload: every failure is downgraded to a warning
- Retention deletes the oldest surplus by modification time, one file at a time

Security:
- Remote paths are quoted via shlex.quote() before reaching the shell
"""

import logging
import posixpath
import shlex
from datetime import date
from typing import Callable, List, Optional
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.transport_port import TransportSession
from tarship.domain.services.progress import Log, ProgressReporter
from tarship.domain.value_objects.backup_record import (
    BackupRecord,
    BackupResult,
    BackupStatus,
    backup_name_for,
    is_backup_name,
)

logger = logging.getLogger(__name__)


class BackupManager:
    def __init__(
        self,
        backup_dir: str,
        max_count: int = 5,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.backup_dir = backup_dir.rstrip("/") or "/"
        self.max_count = max_count
        self._today = today

    def destination(self) -> str:
        return posixpath.join(self.backup_dir, backup_name_for(self._today()))

    async def ensure_directory(self, session: TransportSession) -> None:
        existing = await session.stat(self.backup_dir)
        if existing is None:
            result = await session.exec(f"mkdir -p {shlex.quote(self.backup_dir)}")
            if not result.ok:
                raise DeployError(
                    ErrorKind.BACKUP,
                    f"Could not create backup directory {self.backup_dir} "
                    f"(exit {result.exit_code}): {result.stderr.strip()}",
                )
        elif not existing.is_dir:
            raise DeployError(
                ErrorKind.BACKUP,
                f"Backup path {self.backup_dir} exists but is not a directory",
            )

    async def backup(
        self,
        session: TransportSession,
        local_archive: str,
        remote_archive: str,
        log: Optional[Log] = None,
    ) -> BackupResult:
        log = log or logger
        dest = self.destination()
        try:
            await self.ensure_directory(session)
            if await session.stat(dest) is not None:
                log.warning("Backup %s already exists, skipping backup", dest)
                return BackupResult(BackupStatus.SKIPPED, dest)
            status = await self._create(session, local_archive, remote_archive, dest, log)
        except Exception as e:
            log.warning("Backup to %s failed, continuing without it: %s", dest, e)
            return BackupResult(BackupStatus.FAILED, dest, error=str(e))

        pruned = await self.prune(session, log)
        return BackupResult(status, dest, pruned=tuple(pruned))

    async def _create(
        self,
        session: TransportSession,
        local_archive: str,
        remote_archive: str,
        dest: str,
        log: Log,
    ) -> BackupStatus:
        if await session.stat(remote_archive) is not None:
            result = await session.exec(
                f"cp -- {shlex.quote(remote_archive)} {shlex.quote(dest)}"
            )
            if result.ok:
                log.info("Backed up %s to %s", remote_archive, dest)
                return BackupStatus.COPIED
            log.warning(
                "Remote copy to %s exited with %s, uploading local archive instead",
                dest, result.exit_code,
            )
        else:
            log.info(
                "Remote archive %s not found, uploading local archive to %s",
                remote_archive, dest,
            )

        await session.put(local_archive, dest, progress=ProgressReporter(log, "Backup upload:"))
        log.info("Uploaded backup %s", dest)
        return BackupStatus.UPLOADED

    async def prune(self, session: TransportSession, log: Optional[Log] = None) -> List[str]:
        """
        Deletes the oldest backups beyond max_count. Returns the removed paths.
        """
        log = log or logger
        if self.max_count <= 0:
            return []

        try:
            entries = await session.listdir(self.backup_dir)
        except Exception as e:
            log.warning("Could not list backup directory %s: %s", self.backup_dir, e)
            return []

        records = sorted(
            (
                BackupRecord(entry.filename, entry.mtime, self.backup_dir)
                for entry in entries
                if not entry.is_dir and is_backup_name(entry.filename)
            ),
            key=lambda r: (r.mtime, r.filename),
        )
        surplus = len(records) - self.max_count
        if surplus <= 0:
            return []

        removed: List[str] = []
        for record in records[:surplus]:
            try:
                await session.unlink(record.path)
            except Exception as e:
                log.error("Failed to delete old backup %s: %s", record.path, e)
                continue
            removed.append(record.path)
            log.info("Deleted old backup %s", record.path)
        return removed
