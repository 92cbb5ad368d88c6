"""
Remote Shell Facade

Architectural Intent:
- Ad-hoc remote commands and file operations for hooks and scripts
- Every call opens its own connection and always closes it, independent of
  the pipeline's host sessions
- Target host: explicit index, else the index bound to the facade, else the first host
- spawn() logs output lines while the command is still running
- Log lines carry the host prefix exactly once, whether or not the injected log is host-scoped

Security:
- The working directory is quoted via shlex.quote() before it reaches the shell
"""

import logging
import shlex
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence, Tuple, TypeVar
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.transport_port import CommandResult, TransportPort, TransportSession
from tarship.domain.services.progress import HostLogAdapter, Log
from tarship.domain.value_objects.target_host import TargetHost

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def open_session(
    transport: TransportPort, host: TargetHost
) -> AsyncIterator[TransportSession]:
    """Connects to `host` and guarantees the session is closed on exit."""
    session = await transport.connect(host)
    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as e:
            logger.debug("Closing session to %s failed: %s", host.label, e)


async def ssh_remote(
    transport: TransportPort,
    host: TargetHost,
    task: Callable[[TransportSession], Awaitable[T]],
) -> T:
    """Runs `task` on a fresh connection to `host`, without a pipeline."""
    async with open_session(transport, host) as session:
        return await task(session)


async def sftp_remote(
    transport: TransportPort,
    host: TargetHost,
    task: Callable[[TransportSession], Awaitable[T]],
) -> T:
    """Runs a file-transfer task (put/stat/listdir/unlink) on a fresh connection."""
    logger.debug("Opening file transfer session to %s", host.label)
    return await ssh_remote(transport, host, task)


class RemoteShell:
    def __init__(
        self,
        transport: TransportPort,
        hosts: Sequence[TargetHost],
        host_index: Optional[int] = None,
        remote_cwd: str = "/",
        log: Optional[Log] = None,
    ) -> None:
        self.transport = transport
        self.hosts = tuple(hosts)
        self.host_index = host_index
        self.remote_cwd = remote_cwd
        self.log = log or logger

    def for_host(self, host_index: int, log: Optional[Log] = None) -> "RemoteShell":
        return RemoteShell(
            self.transport, self.hosts, host_index, self.remote_cwd, log or self.log
        )

    def _resolve(self, host_index: Optional[int]) -> Tuple[int, TargetHost]:
        if not self.hosts:
            raise DeployError(
                ErrorKind.CONNECT, "No target hosts configured, cannot run remote commands"
            )
        if host_index is not None:
            index = host_index
        elif self.host_index is not None:
            index = self.host_index
        else:
            index = 0
        if not 0 <= index < len(self.hosts):
            raise DeployError(ErrorKind.CONNECT, f"No target host at index {index}")
        return index, self.hosts[index]

    async def exec(
        self, command: str, host_index: Optional[int] = None, cwd: Optional[str] = None
    ) -> CommandResult:
        return await self._run(command, host_index, cwd, streaming=False)

    async def spawn(
        self, command: str, host_index: Optional[int] = None, cwd: Optional[str] = None
    ) -> CommandResult:
        """Like exec, but logs every output line as it arrives."""
        return await self._run(command, host_index, cwd, streaming=True)

    async def sftp(
        self,
        task: Callable[[TransportSession], Awaitable[T]],
        host_index: Optional[int] = None,
    ) -> T:
        _, host = self._resolve(host_index)
        self._host_log(host).info("Opening file transfer session")
        return await sftp_remote(self.transport, host, task)

    def _host_log(self, host: TargetHost) -> Log:
        if isinstance(self.log, HostLogAdapter) and self.log.extra["host"] == host.label:
            return self.log
        return HostLogAdapter(self.log, host.label)

    async def _run(
        self,
        command: str,
        host_index: Optional[int],
        cwd: Optional[str],
        streaming: bool,
    ) -> CommandResult:
        _, host = self._resolve(host_index)
        log = self._host_log(host)
        workdir = (cwd or self.remote_cwd or "").strip()
        remote_cmd = f"cd {shlex.quote(workdir)} && {command}" if workdir else command
        log.info("Running remote command: %s", remote_cmd)

        async def run(session: TransportSession) -> CommandResult:
            try:
                if streaming:
                    return await session.exec(
                        remote_cmd,
                        on_stdout=lambda line: log.info("%s", line),
                        on_stderr=lambda line: log.error("%s", line),
                    )
                return await session.exec(remote_cmd)
            except DeployError:
                raise
            except Exception as e:
                raise DeployError(
                    ErrorKind.ACTIVATE,
                    f"Remote command could not start: {e}",
                    cause=e,
                    host=host.label,
                ) from e

        result = await ssh_remote(self.transport, host, run)

        if result.ok:
            log.info("Remote command succeeded")
        else:
            log.error("Remote command failed (exit code %s)", result.exit_code)
        return result
