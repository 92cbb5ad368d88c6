"""
Transport Port

Architectural Intent:
- Port interface for the SSH/SFTP primitives the pipeline consumes
- A TransportSession is one authenticated connection to one host
- Implemented by adapters (Fabric, in-memory fakes for tests, etc.)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional
from tarship.domain.value_objects.target_host import TargetHost

ProgressCallback = Callable[[int, int], None]
LineCallback = Callable[[str], None]


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: Optional[int]

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class RemoteStat:
    filename: str
    size: int
    mtime: float
    is_dir: bool = False


class TransportSession(ABC):
    """
    One open connection to a single host. Owned by exactly one HostSession.
    """

    host: TargetHost

    @abstractmethod
    async def exec(
        self,
        command: str,
        on_stdout: Optional[LineCallback] = None,
        on_stderr: Optional[LineCallback] = None,
    ) -> CommandResult:
        """
        Runs a non-interactive command and waits for it to finish.

        When given, on_stdout/on_stderr receive each output line (without the
        newline) as soon as it arrives, possibly from a worker thread. The
        returned result still holds the full output.
        """
        pass

    @abstractmethod
    async def shell(self, command: str) -> CommandResult:
        """
        Submits `command` to an interactive shell channel and waits for the
        exit signal. exit_code is None if the channel closed without one.
        """
        pass

    @abstractmethod
    async def put(
        self,
        local_path: str,
        remote_path: str,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Transfers a local file to the remote path.
        """
        pass

    @abstractmethod
    async def stat(self, remote_path: str) -> Optional[RemoteStat]:
        """
        Returns None when the path does not exist.
        """
        pass

    @abstractmethod
    async def listdir(self, remote_path: str) -> List[RemoteStat]:
        pass

    @abstractmethod
    async def unlink(self, remote_path: str) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class TransportPort(ABC):
    """
    Factory for authenticated transport sessions.
    """

    @abstractmethod
    async def connect(self, host: TargetHost) -> TransportSession:
        """
        Connects and authenticates. Raises DeployError(CONNECT) on failure.
        """
        pass
