"""
Archive Port

Architectural Intent:
- Port interface for producing the gzip tar archive that gets shipped
- Progress is reported as (processed_bytes, total_bytes)
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


class ArchivePort(ABC):
    @abstractmethod
    async def compress(
        self,
        source_dir: str,
        dest_path: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """
        Archives source_dir into dest_path and returns the bytes written.
        Raises DeployError(COMPRESS) if the source is missing or the
        destination cannot be written.
        """
        pass
