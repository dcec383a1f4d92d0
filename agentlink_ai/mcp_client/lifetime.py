"""Explicit lifetime scope for long-lived MCP connections.

A `Lifetime` is created by the application at startup and handed once to
`ToolConnectionManager.initialize`. Closing it releases everything that
registered a callback, in reverse registration order.

Examples:
    async with Lifetime("app") as lifetime:
        await manager.initialize(lifetime)
        ...
    # every cached connection has been released here
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[], Awaitable[None]]


class Lifetime:
    def __init__(self, name: str = "app") -> None:
        self.name = name
        self._cancelled = asyncio.Event()
        self._callbacks: List[ReleaseCallback] = []

    def __repr__(self) -> str:
        return f"Lifetime(name={self.name!r}, cancelled={self.cancelled})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def wait(self) -> None:
        """Block until the lifetime is closed."""
        await self._cancelled.wait()

    def on_cancel(self, callback: ReleaseCallback) -> None:
        """Register an async callback run when the lifetime closes.

        Raises:
            RuntimeError: If the lifetime is already closed.
        """
        if self.cancelled:
            raise RuntimeError(f"Lifetime '{self.name}' is already closed")
        self._callbacks.append(callback)

    async def aclose(self) -> None:
        """Close the lifetime and run release callbacks once.

        A failing callback is logged and does not prevent the remaining ones
        from running.
        """
        if self.cancelled:
            return
        self._cancelled.set()
        callbacks, self._callbacks = self._callbacks, []
        logger.info("Closing lifetime '%s' (%d release callbacks)", self.name, len(callbacks))
        for callback in reversed(callbacks):
            try:
                await callback()
            except Exception as e:
                logger.error("Release callback failed for lifetime '%s': %s", self.name, e)

    async def __aenter__(self) -> "Lifetime":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
