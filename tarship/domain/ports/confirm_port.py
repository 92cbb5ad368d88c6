from typing import Protocol, runtime_checkable


@runtime_checkable
class ConfirmPort(Protocol):
    async def confirm(self, message: str, default: bool = True) -> bool: ...
