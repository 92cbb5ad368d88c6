"""
Typer Confirm Adapter

Architectural Intent:
- Implements ConfirmPort with typer's terminal prompt
- The prompt blocks on stdin, so it runs in the default executor
"""

import asyncio
import typer


class TyperConfirm:
    async def confirm(self, message: str, default: bool = True) -> bool:
        def _ask() -> bool:
            try:
                return typer.confirm(message, default=default)
            except typer.Abort:
                # Ctrl-C / EOF at the prompt counts as "no"
                return False

        return await asyncio.get_event_loop().run_in_executor(None, _ask)
