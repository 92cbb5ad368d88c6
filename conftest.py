"""Global test configuration.

In-memory transport fakes and request factories shared by every test package.
Each fake host keeps its own remote filesystem so tests can assert on what
was written where.
"""

import os
import posixpath
import shlex
from collections import defaultdict
from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock
import pytest
from tarship.application.dtos.deployment_dtos import DeployRequest
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.transport_port import (
    CommandResult,
    RemoteStat,
    TransportPort,
    TransportSession,
)
from tarship.domain.value_objects.target_host import TargetHost


class FakeRemote:
    """Remote filesystem of one fake host."""

    def __init__(self) -> None:
        self.files: Dict[str, RemoteStat] = {}
        self.dirs: set[str] = set()
        self.clock = 1_000.0

    def write(self, path: str, size: int = 0, mtime: Optional[float] = None) -> None:
        if mtime is None:
            self.clock += 1
            mtime = self.clock
        self.files[path] = RemoteStat(posixpath.basename(path), size, mtime)
        self.dirs.add(posixpath.dirname(path))


class FakeSession(TransportSession):
    def __init__(self, transport: "FakeTransport", host: TargetHost) -> None:
        self.transport = transport
        self.host = host
        self.remote = transport.remotes[host.host]
        self.commands: List[str] = []
        self.shell_commands: List[str] = []
        self.closed = 0

    async def exec(self, command: str, on_stdout=None, on_stderr=None) -> CommandResult:
        self.commands.append(command)
        override = self.transport.exec_results.get(self.host.host)
        if override is not None:
            result = override(command)
            for callback, text in ((on_stdout, result.stdout), (on_stderr, result.stderr)):
                if callback:
                    for line in text.splitlines():
                        callback(line)
            return result

        argv = shlex.split(command)
        if argv[:2] == ["mkdir", "-p"]:
            self.remote.dirs.add(argv[2])
            return CommandResult("", "", 0)
        if argv[:2] == ["cp", "--"]:
            src, dest = argv[2], argv[3]
            if src not in self.remote.files:
                return CommandResult("", f"cp: cannot stat '{src}'", 1)
            self.remote.write(dest, self.remote.files[src].size)
            return CommandResult("", "", 0)
        return CommandResult("", "", 0)

    async def shell(self, command: str) -> CommandResult:
        self.shell_commands.append(command)
        self.transport.activated.append(self.host.label)
        return self.transport.shell_results.get(self.host.host, CommandResult("", "", 0))

    async def put(self, local_path, remote_path, progress=None) -> None:
        failures = self.transport.put_failures
        if failures[self.host.host] > 0:
            failures[self.host.host] -= 1
            raise OSError("transfer interrupted")
        size = os.path.getsize(local_path) if os.path.exists(local_path) else 0
        self.remote.write(remote_path, size)
        self.transport.puts.append((self.host.label, local_path, remote_path))
        if progress:
            progress(size, size)

    async def stat(self, remote_path: str) -> Optional[RemoteStat]:
        if remote_path in self.remote.files:
            return self.remote.files[remote_path]
        if remote_path in self.remote.dirs:
            return RemoteStat(posixpath.basename(remote_path), 0, 0, is_dir=True)
        return None

    async def listdir(self, remote_path: str) -> List[RemoteStat]:
        return [
            entry
            for path, entry in self.remote.files.items()
            if posixpath.dirname(path) == remote_path
        ]

    async def unlink(self, remote_path: str) -> None:
        if remote_path in self.transport.unlink_failures:
            raise OSError(f"permission denied: {remote_path}")
        self.remote.files.pop(remote_path)
        self.transport.unlinked.append(remote_path)

    async def close(self) -> None:
        self.closed += 1


class FakeTransport(TransportPort):
    """
    TransportPort double. Hosts listed in `unreachable` refuse every
    connection; `connect_failures` / `put_failures` fail the first N calls.
    """

    def __init__(self) -> None:
        self.remotes: Dict[str, FakeRemote] = defaultdict(FakeRemote)
        self.unreachable: set[str] = set()
        self.connect_failures: Dict[str, int] = defaultdict(int)
        self.put_failures: Dict[str, int] = defaultdict(int)
        self.shell_results: Dict[str, CommandResult] = {}
        self.exec_results: Dict[str, Callable[[str], CommandResult]] = {}
        self.unlink_failures: set[str] = set()
        self.connects: List[str] = []
        self.sessions: List[FakeSession] = []
        self.puts: List[tuple] = []
        self.activated: List[str] = []
        self.unlinked: List[str] = []

    async def connect(self, host: TargetHost) -> TransportSession:
        self.connects.append(host.label)
        if host.host in self.unreachable:
            raise DeployError(
                ErrorKind.CONNECT, f"Could not connect to {host}: refused", host=host.label
            )
        if self.connect_failures[host.host] > 0:
            self.connect_failures[host.host] -= 1
            raise DeployError(
                ErrorKind.CONNECT, f"Could not connect to {host}: timed out", host=host.label
            )
        session = FakeSession(self, host)
        self.sessions.append(session)
        return session

    def sessions_for(self, host: str) -> List[FakeSession]:
        return [s for s in self.sessions if s.host.host == host]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fake_builder():
    builder = AsyncMock()
    builder.run = AsyncMock(return_value=None)
    return builder


@pytest.fixture
def fake_archiver():
    archiver = AsyncMock()
    archiver.compress = AsyncMock(return_value=2048)
    return archiver


@pytest.fixture
def make_request(tmp_path):
    """Factory for valid DeployRequests pointing at a real local archive path."""
    local_dir = tmp_path / "dist"
    local_dir.mkdir()
    (local_dir / "index.html").write_text("<h1>hello</h1>")
    archive = tmp_path / "dist.tar.gz"
    archive.write_bytes(b"x" * 512)

    def _make(hosts=("10.0.0.1",), **overrides) -> DeployRequest:
        options = dict(
            hosts=tuple(
                h if isinstance(h, TargetHost) else TargetHost.parse(f"deploy@{h}")
                for h in hosts
            ),
            local_dir=str(local_dir),
            local_archive=str(archive),
            remote_archive="/tmp/dist.tar.gz",
            remote_dir="/var/www/app",
            remove_local_archive=False,
        )
        options.update(overrides)
        return DeployRequest(**options)

    return _make
