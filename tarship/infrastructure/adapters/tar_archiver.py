"""
Tar Archiver

Architectural Intent:
- Infrastructure adapter implementing ArchivePort with the stdlib tarfile module
- gzip at maximum compression; members are stored relative to the source directory
- An archive written inside its own source directory is left out of itself
"""

import asyncio
import logging
import tarfile
from pathlib import Path
from typing import Callable, Optional
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.archive_port import ArchivePort

logger = logging.getLogger(__name__)


class TarArchiver(ArchivePort):
    def __init__(self, compresslevel: int = 9) -> None:
        self.compresslevel = compresslevel

    async def compress(
        self,
        source_dir: str,
        dest_path: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        return await asyncio.get_event_loop().run_in_executor(
            None, self._compress, source_dir, dest_path, on_progress
        )

    def _compress(
        self,
        source_dir: str,
        dest_path: str,
        on_progress: Optional[Callable[[int, int], None]],
    ) -> int:
        source = Path(source_dir).resolve()
        if not source.is_dir():
            raise DeployError(
                ErrorKind.COMPRESS, f"Source directory does not exist: {source_dir}"
            )

        dest = Path(dest_path).resolve()
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DeployError(
                ErrorKind.COMPRESS,
                f"Cannot create archive directory {dest.parent}: {e}",
                cause=e,
            ) from e

        members = [p for p in sorted(source.rglob("*")) if p.resolve() != dest]
        total = sum(p.stat().st_size for p in members if p.is_file())
        processed = 0

        try:
            with tarfile.open(dest, "w:gz", compresslevel=self.compresslevel) as tar:
                for path in members:
                    tar.add(path, arcname=path.relative_to(source).as_posix(), recursive=False)
                    if path.is_file():
                        processed += path.stat().st_size
                        if on_progress:
                            on_progress(processed, total)
        except (OSError, tarfile.TarError) as e:
            raise DeployError(
                ErrorKind.COMPRESS, f"Failed to write archive {dest_path}: {e}", cause=e
            ) from e

        size = dest.stat().st_size
        logger.debug("Archived %d entries from %s (%d bytes)", len(members), source, size)
        return size
