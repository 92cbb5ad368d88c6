"""
Build Port

Architectural Intent:
- Port interface for running the local build command
- Implemented by SubprocessBuilder
"""

from abc import ABC, abstractmethod
from typing import Optional


class BuildPort(ABC):
    @abstractmethod
    async def run(self, command: str, cwd: Optional[str] = None) -> None:
        """
        Runs the build command. Raises DeployError(BUILD) carrying the exit
        code when it does not exit with 0.
        """
        pass
