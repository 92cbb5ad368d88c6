"""
Upload Artifact Use Case

Architectural Intent:
- Establishes the host's transport session and ships the archive over it
- connect + authenticate + transfer form one attempt; the retry budget counts whole attempts
- A failed attempt's connection is closed before the next attempt opens a fresh one
- On success the live handle is attached to the HostSession, which owns it from then on
- Every failed attempt that will be retried can be reported to the caller before the pause
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional
from tarship.domain.entities.host_session import HostSession
from tarship.domain.errors import DeployError, ErrorKind, as_deploy_error
from tarship.domain.ports.transport_port import TransportPort, TransportSession
from tarship.domain.services.progress import Log, ProgressReporter
from tarship.domain.services.retry import RetryExhausted, RetryPolicy, retry_async

logger = logging.getLogger(__name__)


class UploadArtifact:
    def __init__(
        self,
        transport: TransportPort,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self._sleep = sleep

    async def execute(
        self,
        session: HostSession,
        local_archive: str,
        remote_archive: str,
        policy: RetryPolicy,
        log: Optional[Log] = None,
        on_retry: Optional[Callable[[DeployError, int], Awaitable[None]]] = None,
    ) -> int:
        """
        Returns the number of attempts it took. Raises DeployError once the
        budget is spent; its kind is the kind of the last failure.

        on_retry(error, attempt) is awaited for each failed attempt except the last.
        """
        log = log or logger
        host = session.host
        made = 0

        async def attempt(number: int) -> TransportSession:
            nonlocal made
            made = number
            log.info("Connecting to %s (attempt %d/%d)", host, number, policy.attempts)
            try:
                handle = await self.transport.connect(host)
            except Exception as e:
                raise as_deploy_error(e, ErrorKind.CONNECT, host.label)

            try:
                await handle.put(
                    local_archive,
                    remote_archive,
                    progress=ProgressReporter(log, "Upload progress:"),
                )
            except Exception as e:
                await _close_quietly(handle, log)
                raise as_deploy_error(e, ErrorKind.UPLOAD, host.label)
            return handle

        async def report(number: int, exc: Exception) -> None:
            log.warning("Attempt %d/%d failed: %s", number, policy.attempts, exc)
            if on_retry is not None and number < policy.attempts:
                await on_retry(as_deploy_error(exc, ErrorKind.UPLOAD, host.label), number)

        try:
            handle = await retry_async(attempt, policy, on_retry=report, sleep=self._sleep)
        except RetryExhausted as exhausted:
            session.record_attempts(exhausted.attempts)
            last = as_deploy_error(exhausted.last_error, ErrorKind.UPLOAD, host.label)
            raise DeployError(
                last.kind,
                f"Upload failed after {exhausted.attempts} attempt(s): {last.message}",
                cause=last,
                host=host.label,
                attempts=exhausted.attempts,
            ) from last

        session.attach(handle)
        session.record_attempts(made)
        log.info("Uploaded %s to %s", local_archive, remote_archive)
        return made


async def _close_quietly(handle: TransportSession, log: Log) -> None:
    try:
        await handle.close()
    except Exception as e:
        log.debug("Closing failed connection raised: %s", e)
