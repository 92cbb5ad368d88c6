"""
Fabric Adapter

Architectural Intent:
- Infrastructure adapter implementing TransportPort via Fabric/SSH
- One fabric Connection per FabricSession; SFTP rides on the same connection
- Blocking paramiko calls run in the default executor so each host yields to the others

Security:
- SSH connections use connect_timeout, allow_agent, look_for_keys
- Passwords and key files come from the TargetHost and are never logged
"""

import asyncio
import logging
import posixpath
import stat
from typing import List, Optional
from fabric import Connection
from paramiko.ssh_exception import AuthenticationException, SSHException
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.transport_port import (
    CommandResult,
    LineCallback,
    ProgressCallback,
    RemoteStat,
    TransportPort,
    TransportSession,
)
from tarship.domain.value_objects.target_host import TargetHost

logger = logging.getLogger(__name__)


class _LineWriter:
    """File-like sink that hands each complete line to a callback."""

    def __init__(self, callback: Optional[LineCallback]) -> None:
        self._callback = callback
        self._pending = ""

    def write(self, data: str) -> int:
        if self._callback is None:
            return len(data)
        *lines, self._pending = (self._pending + data).split("\n")
        for line in lines:
            self._callback(line.rstrip("\r"))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        if self._callback is not None and self._pending:
            self._callback(self._pending.rstrip("\r"))
        self._pending = ""


class FabricSession(TransportSession):
    """An open SSH connection to one host."""

    def __init__(self, host: TargetHost, connection: Connection) -> None:
        self.host = host
        self._conn = connection

    async def _offload(self, fn, *args):
        return await asyncio.get_event_loop().run_in_executor(None, fn, *args)

    async def exec(
        self,
        command: str,
        on_stdout: Optional[LineCallback] = None,
        on_stderr: Optional[LineCallback] = None,
    ) -> CommandResult:
        def _run() -> CommandResult:
            if on_stdout is None and on_stderr is None:
                result = self._conn.run(command, hide=True, warn=True, in_stream=False)
                return CommandResult(result.stdout, result.stderr, result.exited)

            out, err = _LineWriter(on_stdout), _LineWriter(on_stderr)
            try:
                # invoke echoes output into the streams unless it is hidden
                result = self._conn.run(
                    command,
                    hide=False,
                    warn=True,
                    in_stream=False,
                    out_stream=out,
                    err_stream=err,
                )
            finally:
                out.close()
                err.close()
            return CommandResult(result.stdout, result.stderr, result.exited)

        return await self._offload(_run)

    async def shell(self, command: str) -> CommandResult:
        def _shell() -> CommandResult:
            channel = self._conn.transport.open_session()
            try:
                channel.invoke_shell()
                channel.sendall(command.encode())
                channel.shutdown_write()
                stdout = channel.makefile("rb").read().decode(errors="replace")
                stderr = channel.makefile_stderr("rb").read().decode(errors="replace")
                code = channel.recv_exit_status()
            finally:
                channel.close()
            # paramiko reports -1 when the server never sent an exit status
            return CommandResult(stdout, stderr, None if code == -1 else code)

        return await self._offload(_shell)

    async def put(
        self,
        local_path: str,
        remote_path: str,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        def _put() -> None:
            self._conn.sftp().put(local_path, remote_path, callback=progress)

        await self._offload(_put)

    async def stat(self, remote_path: str) -> Optional[RemoteStat]:
        def _stat() -> Optional[RemoteStat]:
            try:
                attr = self._conn.sftp().stat(remote_path)
            except FileNotFoundError:
                return None
            return RemoteStat(
                filename=posixpath.basename(remote_path.rstrip("/")),
                size=attr.st_size or 0,
                mtime=attr.st_mtime or 0,
                is_dir=stat.S_ISDIR(attr.st_mode or 0),
            )

        return await self._offload(_stat)

    async def listdir(self, remote_path: str) -> List[RemoteStat]:
        def _listdir() -> List[RemoteStat]:
            return [
                RemoteStat(
                    filename=attr.filename,
                    size=attr.st_size or 0,
                    mtime=attr.st_mtime or 0,
                    is_dir=stat.S_ISDIR(attr.st_mode or 0),
                )
                for attr in self._conn.sftp().listdir_attr(remote_path)
            ]

        return await self._offload(_listdir)

    async def unlink(self, remote_path: str) -> None:
        await self._offload(lambda: self._conn.sftp().remove(remote_path))

    async def close(self) -> None:
        await self._offload(self._conn.close)


class FabricTransport(TransportPort):
    """Adapter implementing TransportPort via Fabric/SSH."""

    def __init__(
        self,
        connect_timeout: int = 30,
        allow_agent: bool = True,
        look_for_keys: bool = True,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.allow_agent = allow_agent
        self.look_for_keys = look_for_keys

    def _get_connection(self, host: TargetHost) -> Connection:
        connect_kwargs = {
            "allow_agent": self.allow_agent,
            "look_for_keys": self.look_for_keys,
        }
        if host.password:
            connect_kwargs["password"] = host.password
        if host.key_filename:
            connect_kwargs["key_filename"] = host.key_filename
        return Connection(
            host=host.host,
            user=host.user,
            port=host.port,
            connect_timeout=self.connect_timeout,
            connect_kwargs=connect_kwargs,
        )

    async def connect(self, host: TargetHost) -> TransportSession:
        conn = self._get_connection(host)
        try:
            await asyncio.get_event_loop().run_in_executor(None, conn.open)
        except AuthenticationException as e:
            conn.close()
            raise DeployError(
                ErrorKind.CONNECT,
                f"Authentication failed for {host}: {e}",
                cause=e,
                host=host.label,
            ) from e
        except (SSHException, OSError) as e:
            conn.close()
            raise DeployError(
                ErrorKind.CONNECT,
                f"Could not connect to {host}: {e}",
                cause=e,
                host=host.label,
            ) from e
        logger.debug("Connected to %s", host)
        return FabricSession(host, conn)
