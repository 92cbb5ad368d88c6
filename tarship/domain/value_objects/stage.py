"""
Stage Value Object

Architectural Intent:
- The fixed, ordered phases of a deployment run
- Each stage names the error kind its failures are classified as
- Each stage also bounds how far an error raised inside it may propagate
"""

from enum import Enum

from tarship.domain.errors import ErrorKind, ErrorScope


class Stage(Enum):
    """Ordered phases of a deployment run."""
    VALIDATE = "validate"
    BUILD = "build"
    COMPRESS = "compress"
    CONNECT = "connect"
    UPLOAD = "upload"
    ACTIVATE = "deploy"
    CLEANUP = "cleanup"

    @property
    def error_kind(self) -> ErrorKind:
        return _STAGE_KINDS[self]

    @property
    def scope(self) -> ErrorScope:
        return self.error_kind.scope

    def scope_of(self, kind: ErrorKind) -> ErrorScope:
        """How far an error of `kind` raised during this stage propagates."""
        return kind.scope.within(self.scope)


_STAGE_KINDS = {
    Stage.VALIDATE: ErrorKind.CONFIGURATION,
    Stage.BUILD: ErrorKind.BUILD,
    Stage.COMPRESS: ErrorKind.COMPRESS,
    Stage.CONNECT: ErrorKind.CONNECT,
    Stage.UPLOAD: ErrorKind.UPLOAD,
    Stage.ACTIVATE: ErrorKind.ACTIVATE,
    Stage.CLEANUP: ErrorKind.CLEANUP,
}
