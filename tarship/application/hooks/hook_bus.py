"""
Hook & Error Bus

Architectural Intent:
- One generic dispatcher for every lifecycle hook instead of a call site per hook
- Hook points form a closed enum; every hook receives the same StageContext shape
- Hook exceptions are converted into the DeployError taxonomy with host attribution
- A single global error hook decides whether a classified error is handled

Design Decisions:
- Hooks may be plain functions or coroutines; awaitables are awaited
- A failing error hook counts as "not handled" so the original error surfaces
- DeploymentCancelled raised from a hook is passed through untouched
"""

from __future__ import annotations
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional, Sequence, Union
from tarship.domain.errors import DeployError, DeploymentCancelled, ErrorKind, as_deploy_error
from tarship.domain.ports.transport_port import TransportPort, TransportSession
from tarship.domain.services.progress import Log
from tarship.domain.value_objects.stage import Stage
from tarship.domain.value_objects.target_host import TargetHost

if TYPE_CHECKING:
    from tarship.application.dtos.deployment_dtos import DeployRequest
    from tarship.application.use_cases.remote_shell import RemoteShell

logger = logging.getLogger(__name__)


class HookPoint(Enum):
    BEFORE_BUILD = "before_build"
    AFTER_BUILD = "after_build"
    BEFORE_COMPRESS = "before_compress"
    AFTER_COMPRESS = "after_compress"
    BEFORE_CONNECT = "before_connect"
    AFTER_CONNECT = "after_connect"
    BEFORE_UPLOAD = "before_upload"
    AFTER_UPLOAD = "after_upload"
    BEFORE_DEPLOY = "before_deploy"
    AFTER_DEPLOY = "after_deploy"
    BEFORE_CLEANUP = "before_cleanup"
    AFTER_CLEANUP = "after_cleanup"

    @property
    def stage(self) -> Stage:
        return Stage(self.value.split("_", 1)[1])


@dataclass(frozen=True)
class StageContext:
    stage: Stage
    request: "DeployRequest"
    started_at: float = field(default_factory=time.time)
    host: Optional[TargetHost] = None
    host_index: Optional[int] = None
    shell: Optional["RemoteShell"] = None
    logger: Log = logger
    session: Optional[TransportSession] = None
    sessions: tuple[TransportSession, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def host_label(self) -> Optional[str]:
        return self.host.label if self.host else None


@dataclass(frozen=True)
class ErrorContext:
    error: DeployError
    context: StageContext
    can_retry: bool = False
    retry_count: Optional[int] = None

    @property
    def stage(self) -> Stage:
        return self.context.stage

    @property
    def host(self) -> Optional[TargetHost]:
        return self.context.host


Hook = Callable[[StageContext], Union[None, Awaitable[None]]]
ErrorHook = Callable[[ErrorContext], Union[Optional[bool], Awaitable[Optional[bool]]]]
CustomUpload = Callable[
    [TransportPort, StageContext],
    Awaitable[Sequence[TransportSession]],
]
CustomDeploy = Callable[[Sequence[TransportSession], StageContext], Awaitable[None]]


@dataclass(frozen=True)
class HookSet:
    before_build: Optional[Hook] = None
    after_build: Optional[Hook] = None
    before_compress: Optional[Hook] = None
    after_compress: Optional[Hook] = None
    before_connect: Optional[Hook] = None
    after_connect: Optional[Hook] = None
    before_upload: Optional[Hook] = None
    after_upload: Optional[Hook] = None
    before_deploy: Optional[Hook] = None
    after_deploy: Optional[Hook] = None
    before_cleanup: Optional[Hook] = None
    after_cleanup: Optional[Hook] = None
    on_error: Optional[ErrorHook] = None
    custom_upload: Optional[CustomUpload] = None
    custom_deploy: Optional[CustomDeploy] = None

    def get(self, point: HookPoint) -> Optional[Hook]:
        return getattr(self, point.value)


async def _call(fn: Callable[[Any], Any], arg: Any) -> Any:
    result = fn(arg)
    if inspect.isawaitable(result):
        result = await result
    return result


async def execute_hook(hook: Optional[Hook], context: StageContext) -> None:
    """
    Runs an optional hook. A DeployError raised by the hook keeps its kind;
    any other exception becomes DeployError(UNKNOWN).
    """
    if hook is None:
        return
    try:
        await _call(hook, context)
    except DeploymentCancelled:
        raise
    except DeployError as e:
        raise e.with_host(context.host_label) if context.host_label else e
    except Exception as e:
        raise DeployError(
            ErrorKind.UNKNOWN,
            f"Hook execution failed in stage {context.stage.value}: {e}",
            cause=e,
            host=context.host_label,
        ) from e


async def handle_error(
    error: BaseException,
    on_error: Optional[ErrorHook],
    context: StageContext,
    can_retry: bool = False,
    retry_count: Optional[int] = None,
) -> bool:
    """
    Offers a classified error to the global error hook.

    Returns True if the hook reports the error as handled. Without a hook,
    or when the hook itself raises, the error is not handled.
    """
    deploy_error = as_deploy_error(error, ErrorKind.UNKNOWN, context.host_label)
    if on_error is None:
        return False

    try:
        result = await _call(
            on_error,
            ErrorContext(
                error=deploy_error,
                context=context,
                can_retry=can_retry,
                retry_count=retry_count,
            ),
        )
    except Exception as hook_error:
        context.logger.error("Error hook execution failed: %s", hook_error)
        return False
    return bool(result)
