"""
Deployment Pipeline Orchestrator

Architectural Intent:
- Drives the fixed stage sequence: validate, build, compress, connect+upload
  (+backup), activate, cleanup
- Host stages run per host, concurrently via asyncio.gather or one after another
- Each host task owns exactly one HostSession and returns through it; the summary
  is reduced from the sessions after the join (no shared counters)
- Every opened session is closed once in teardown, whatever happened before

Error Propagation:
- Every caught error is classified, then Stage.scope_of(kind) decides how far it goes
- Outside a host task, PIPELINE and HOST errors raise to the caller
- Inside a host stage the scope is capped at HOST, so only that host fails
- SOFT errors (backup, cleanup, and anything raised during cleanup) are warnings
- An error the on_error hook reports as handled lets the run continue with the next step,
  except that a failed upload or activation still fails its host
"""

import asyncio
import logging
import os
import time
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence
from tarship.application.dtos.deployment_dtos import DeployRequest, DeploySummary, Outcome
from tarship.application.hooks.hook_bus import (
    HookPoint,
    StageContext,
    execute_hook,
    handle_error,
)
from tarship.application.use_cases.activate_release import ActivateRelease
from tarship.application.use_cases.interactive_gate import InteractiveGate
from tarship.application.use_cases.remote_shell import RemoteShell
from tarship.application.use_cases.upload_artifact import UploadArtifact
from tarship.domain.entities.host_session import HostSession, SessionStatus
from tarship.domain.errors import (
    DeployError,
    DeploymentCancelled,
    ErrorKind,
    ErrorScope,
    as_deploy_error,
)
from tarship.domain.events.event_base import (
    DeploymentFinishedEvent,
    DomainEvent,
    HostDeployedEvent,
    HostFailedEvent,
)
from tarship.domain.ports.archive_port import ArchivePort
from tarship.domain.ports.build_port import BuildPort
from tarship.domain.ports.confirm_port import ConfirmPort
from tarship.domain.ports.event_bus_port import EventBusPort
from tarship.domain.ports.transport_port import TransportPort, TransportSession
from tarship.domain.services.backup_manager import BackupManager
from tarship.domain.services.progress import HostLogAdapter, Log, ProgressReporter
from tarship.domain.services.retry import RetryPolicy
from tarship.domain.value_objects.stage import Stage

logger = logging.getLogger(__name__)

Step = Callable[[], Awaitable[Any]]


def _hook_points(stage: Stage) -> tuple[HookPoint, HookPoint]:
    return HookPoint(f"before_{stage.value}"), HookPoint(f"after_{stage.value}")


class DeploymentPipeline:
    def __init__(
        self,
        transport: TransportPort,
        builder: BuildPort,
        archiver: ArchivePort,
        confirm: Optional[ConfirmPort] = None,
        event_bus: Optional[EventBusPort] = None,
        logger: Optional[Log] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.transport = transport
        self.builder = builder
        self.archiver = archiver
        self.confirm = confirm
        self.event_bus = event_bus
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep
        self.today = today

    async def deploy(self, request: DeployRequest) -> DeploySummary:
        """
        Runs one deployment. Returns the summary for success, partial success,
        total host failure, cancellation and handled configuration errors;
        raises DeployError for unhandled pipeline-scoped failures.
        """
        run = _PipelineRun(self, request)
        summary = await run.execute()
        if self.event_bus is not None:
            await self.event_bus.publish(_events(summary))
        return summary


class _PipelineRun:
    """State of a single deploy() call."""

    def __init__(self, pipeline: DeploymentPipeline, request: DeployRequest) -> None:
        self.pipeline = pipeline
        self.request = request
        self.hooks = request.hooks
        self.log = pipeline.logger
        self.sessions = [HostSession(host, i) for i, host in enumerate(request.hosts)]
        self.shell = RemoteShell(
            pipeline.transport, request.hosts, remote_cwd=request.remote_cwd, log=self.log
        )
        self.uploader = UploadArtifact(pipeline.transport, sleep=pipeline.sleep)
        self.activator = ActivateRelease()
        self.gate: Optional[InteractiveGate] = None
        self.started = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    async def execute(self) -> DeploySummary:
        request = self.request
        try:
            try:
                request.validate()
            except DeployError as e:
                if await handle_error(e, self.hooks.on_error, self.context(Stage.VALIDATE)):
                    self.log.warning("Configuration error handled, deployment aborted: %s", e)
                    return DeploySummary(outcome=Outcome.ABORTED, elapsed=self.elapsed, error=e)
                raise

            if request.interactive:
                if self.pipeline.confirm is None:
                    raise DeployError(
                        ErrorKind.CONFIGURATION,
                        "Interactive mode requires a confirmation prompt",
                    )
                self.gate = InteractiveGate(self.pipeline.confirm, self.log)
                self.gate.announce()

            self.log.info(
                "Deploying %s to %d host(s) (%s)",
                request.local_dir,
                len(self.sessions),
                "concurrent" if request.concurrent else "sequential",
            )

            if self.gate:
                await self.gate.confirm_build(request)
            if request.skip_build:
                self.log.info("Skipping build")
            else:
                await self.pipeline_stage(Stage.BUILD, self.build)

            if self.gate:
                await self.gate.confirm_compress(request)
            await self.pipeline_stage(Stage.COMPRESS, self.compress)

            if self.gate:
                await self.gate.confirm_upload(request)
            await self.ship()

            if self.gate:
                await self.gate.confirm_cleanup(request)
            await self.cleanup()

            summary = DeploySummary.reduce(self.outcomes(), self.elapsed)
        except DeploymentCancelled as cancelled:
            summary = DeploySummary.reduce(
                self.outcomes(), self.elapsed, cancelled_at=cancelled.stage
            )
        finally:
            await self.teardown()

        self.report(summary)
        return summary

    def outcomes(self):
        return [s.outcome() for s in self.sessions]

    def context(
        self,
        stage: Stage,
        session: Optional[HostSession] = None,
        log: Optional[Log] = None,
        sessions: Sequence[TransportSession] = (),
        **details: Any,
    ) -> StageContext:
        if session is None:
            return StageContext(
                stage=stage,
                request=self.request,
                shell=self.shell,
                logger=log or self.log,
                sessions=tuple(sessions),
                details=details,
            )
        log = log or self.log
        return StageContext(
            stage=stage,
            request=self.request,
            host=session.host,
            host_index=session.index,
            shell=self.shell.for_host(session.index, log),
            logger=log,
            session=session.handle,
            details=details,
        )

    # pipeline-scoped stages

    async def pipeline_stage(self, stage: Stage, work: Step) -> None:
        before, after = _hook_points(stage)
        context = self.context(stage)
        await self.guarded(context, lambda: execute_hook(self.hooks.get(before), context))
        await self.guarded(context, work)
        await self.guarded(context, lambda: execute_hook(self.hooks.get(after), context))

    async def guarded(self, context: StageContext, step: Step) -> None:
        try:
            await step()
        except DeploymentCancelled:
            raise
        except Exception as e:
            error = as_deploy_error(e, context.stage.error_kind, context.host_label)
            if await handle_error(error, self.hooks.on_error, context):
                context.logger.warning("Handled error in %s stage: %s", context.stage.value, error)
                return
            if context.stage.scope_of(error.kind) == ErrorScope.SOFT:
                context.logger.warning("%s", error)
                return
            if error is e:
                raise
            raise error from e

    async def build(self) -> None:
        self.log.info("Running build command: %s", self.request.build_command)
        await self.pipeline.builder.run(
            self.request.build_command, cwd=self.request.project_root
        )
        self.log.info("Build finished")

    async def compress(self) -> None:
        request = self.request
        self.log.info("Compressing %s into %s", request.local_dir, request.local_archive)
        size = await self.pipeline.archiver.compress(
            request.local_dir,
            request.local_archive,
            on_progress=ProgressReporter(self.log, "Compress progress:"),
        )
        self.log.info("Archive ready: %s (%.2fMB)", request.local_archive, size / (1024 * 1024))

    async def cleanup(self) -> None:
        before, after = _hook_points(Stage.CLEANUP)
        context = self.context(Stage.CLEANUP)
        await self.guarded(context, lambda: execute_hook(self.hooks.get(before), context))
        if self.request.remove_local_archive:
            await self.guarded(context, self.remove_local_archive)
        await self.guarded(context, lambda: execute_hook(self.hooks.get(after), context))

    async def remove_local_archive(self) -> None:
        path = self.request.local_archive

        def _remove() -> None:
            try:
                os.remove(path)
            except FileNotFoundError:
                logger.debug("Local archive %s already gone", path)
            except OSError as e:
                raise DeployError(
                    ErrorKind.CLEANUP, f"Could not delete local archive {path}: {e}", cause=e
                ) from e

        await asyncio.get_event_loop().run_in_executor(None, _remove)
        self.log.info("Deleted local archive %s", path)

    # host-scoped stages

    async def ship(self) -> None:
        if self.hooks.custom_upload is not None:
            await self.custom_upload()
            await self.for_each_host(self.finish_host, self.ready_or_pending())
        else:
            await self.for_each_host(self.host_pipeline, self.sessions)

        if self.hooks.custom_deploy is not None:
            await self.custom_deploy()

    def ready_or_pending(self) -> List[HostSession]:
        return [s for s in self.sessions if s.status != SessionStatus.FAILED]

    async def for_each_host(
        self, task: Callable[[HostSession], Awaitable[None]], sessions: Iterable[HostSession]
    ) -> None:
        sessions = list(sessions)
        if self.request.concurrent:
            results = await asyncio.gather(*(task(s) for s in sessions), return_exceptions=True)
        else:
            results = []
            for session in sessions:
                try:
                    results.append(await task(session))
                except DeploymentCancelled:
                    raise
                except Exception as e:
                    results.append(e)

        cancelled = None
        for session, result in zip(sessions, results):
            if isinstance(result, DeploymentCancelled):
                cancelled = cancelled or result
            elif isinstance(result, Exception):
                error = as_deploy_error(result, ErrorKind.UNKNOWN, session.host.label)
                self.log.error("[%s] Host task crashed: %s", session.host.label, error)
                if session.status != SessionStatus.SUCCEEDED:
                    session.fail(error)
            elif isinstance(result, BaseException):
                raise result
        if cancelled is not None:
            raise cancelled

    async def host_step(
        self,
        sessions: Sequence[HostSession],
        context: StageContext,
        step: Step,
        work: bool = False,
    ) -> bool:
        """
        Runs one host-scoped step. Returns False when the affected host(s)
        failed and must not continue.
        """
        try:
            await step()
            return True
        except DeploymentCancelled:
            raise
        except Exception as e:
            error = as_deploy_error(e, context.stage.error_kind, context.host_label)
            handled = await handle_error(
                error,
                self.hooks.on_error,
                context,
                retry_count=error.attempts,
            )
            if not work:
                if handled:
                    context.logger.warning(
                        "Handled error in %s stage: %s", context.stage.value, error
                    )
                    return True
                if context.stage.scope_of(error.kind) == ErrorScope.SOFT:
                    context.logger.warning("%s", error)
                    return True
            context.logger.error("%s stage failed: %s", context.stage.value, error.message)
            _fail_all(sessions, error)
            return False

    async def host_pipeline(self, session: HostSession) -> None:
        log = HostLogAdapter(self.log, session.host.label)
        hooks = self.hooks
        request = self.request

        connect = self.context(Stage.CONNECT, session, log)
        if not await self.host_step(
            [session], connect, lambda: execute_hook(hooks.before_connect, connect)
        ):
            return

        upload = self.context(Stage.UPLOAD, session, log)
        if not await self.host_step(
            [session], upload, lambda: execute_hook(hooks.before_upload, upload)
        ):
            return

        async def offer_retry(error: DeployError, attempt: int) -> None:
            # the attempt is retried whatever on_error answers
            await handle_error(
                error, hooks.on_error, upload, can_retry=True, retry_count=attempt
            )

        policy = RetryPolicy(attempts=request.retry_count, delay=request.retry_delay)
        if not await self.host_step(
            [session],
            upload,
            lambda: self.uploader.execute(
                session,
                request.local_archive,
                request.remote_archive,
                policy,
                log,
                on_retry=offer_retry,
            ),
            work=True,
        ):
            return

        await self.finish_host(session, log)

    async def finish_host(self, session: HostSession, log: Optional[Log] = None) -> None:
        """After-connect hook, backup, after-upload hook, then activation."""
        log = log or HostLogAdapter(self.log, session.host.label)
        hooks = self.hooks

        connect = self.context(Stage.CONNECT, session, log)
        if not await self.host_step(
            [session], connect, lambda: execute_hook(hooks.after_connect, connect)
        ):
            return

        if self.request.remote_backup_dir:
            manager = BackupManager(
                self.request.remote_backup_dir,
                self.request.max_backup_count,
                today=self.pipeline.today,
            )
            result = await manager.backup(
                session.handle, self.request.local_archive, self.request.remote_archive, log
            )
            session.record_backup(result)

        upload = self.context(Stage.UPLOAD, session, log)
        if not await self.host_step(
            [session], upload, lambda: execute_hook(hooks.after_upload, upload)
        ):
            return
        session.mark_ready()

        if hooks.custom_deploy is None:
            await self.activate_host(session, log)

    async def activate_host(self, session: HostSession, log: Log) -> None:
        hooks = self.hooks
        deploy = self.context(Stage.ACTIVATE, session, log)
        if not await self.host_step(
            [session], deploy, lambda: execute_hook(hooks.before_deploy, deploy)
        ):
            return
        if not await self.host_step(
            [session],
            deploy,
            lambda: self.activator.execute(
                session, self.request.resolved_activation_command, log
            ),
            work=True,
        ):
            return
        if not await self.host_step(
            [session], deploy, lambda: execute_hook(hooks.after_deploy, deploy)
        ):
            return
        session.succeed()
        log.info("Deployment succeeded")

    async def custom_upload(self) -> None:
        hooks = self.hooks
        pending = list(self.sessions)
        context = self.context(Stage.UPLOAD)

        async def upload() -> None:
            await execute_hook(hooks.before_connect, context)
            await execute_hook(hooks.before_upload, context)
            self.log.info("Running custom upload for %d host(s)", len(pending))
            handles = list(await hooks.custom_upload(self.pipeline.transport, context))
            if len(handles) != len(pending):
                for handle in handles:
                    try:
                        await handle.close()
                    except Exception as e:
                        self.log.debug("Closing custom upload session failed: %s", e)
                raise DeployError(
                    ErrorKind.UPLOAD,
                    f"custom_upload returned {len(handles)} session(s) "
                    f"for {len(pending)} host(s)",
                )
            for session, handle in zip(pending, handles):
                session.attach(handle)
                session.record_attempts(1)

        await self.host_step(pending, context, upload, work=True)

    async def custom_deploy(self) -> None:
        hooks = self.hooks
        ready = [s for s in self.sessions if s.is_ready]
        if not ready:
            self.log.warning("No host is ready, skipping custom deploy")
            return

        context = self.context(Stage.ACTIVATE, sessions=[s.handle for s in ready])
        if not await self.host_step(
            ready, context, lambda: execute_hook(hooks.before_deploy, context)
        ):
            return
        self.log.info("Running custom deploy for %d host(s)", len(ready))
        if not await self.host_step(
            ready,
            context,
            lambda: hooks.custom_deploy([s.handle for s in ready], context),
            work=True,
        ):
            return
        if not await self.host_step(
            ready, context, lambda: execute_hook(hooks.after_deploy, context)
        ):
            return
        for session in ready:
            session.succeed()

    # teardown & reporting

    async def teardown(self) -> None:
        closed = 0
        for session in self.sessions:
            if await session.close():
                closed += 1
        if closed:
            self.log.debug("Closed %d transport session(s)", closed)

    def report(self, summary: DeploySummary) -> None:
        if summary.outcome == Outcome.CANCELLED:
            self.log.warning(
                "Deployment cancelled before the %s stage\n%s",
                summary.cancelled_at,
                summary.render(),
            )
        elif summary.outcome == Outcome.SUCCESS:
            self.log.info("Deployment finished\n%s", summary.render())
        else:
            self.log.warning("Deployment finished with failures\n%s", summary.render())


def _fail_all(sessions: Sequence[HostSession], error: DeployError) -> None:
    if len(sessions) == 1:
        sessions[0].fail(error)
        return
    for session in sessions:
        if session.status == SessionStatus.SUCCEEDED:
            continue
        session.fail(
            DeployError(
                error.kind,
                error.message,
                cause=error.cause,
                host=session.host.label,
                attempts=error.attempts,
            )
        )


def _events(summary: DeploySummary) -> list[DomainEvent]:
    events: list[DomainEvent] = []
    for outcome in summary.hosts:
        if outcome.succeeded:
            events.append(
                HostDeployedEvent(
                    aggregate_id=outcome.label, host=outcome.label, attempts=outcome.attempts
                )
            )
        elif outcome.failed and outcome.error is not None:
            events.append(
                HostFailedEvent(
                    aggregate_id=outcome.label,
                    host=outcome.label,
                    error_kind=outcome.error.kind.value,
                    error_message=outcome.error.message,
                )
            )
    events.append(
        DeploymentFinishedEvent(
            outcome=summary.outcome.value,
            total=summary.total,
            succeeded=summary.succeeded,
            failed=summary.failed,
            elapsed_seconds=round(summary.elapsed, 3),
        )
    )
    return events
