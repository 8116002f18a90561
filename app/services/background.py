"""Registry for fire-and-forget evaluation tasks."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, Optional, Set, TypeVar

from loguru import logger

T = TypeVar("T")


class BackgroundTasks:
    """Spawn coroutines detached from the request that triggered them.

    The registry holds a strong reference to every running task so it is not
    garbage collected mid-flight, optionally deduplicates by key, and contains
    failures: an exception is logged and the task resolves to its default.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._keyed: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def is_running(self, key: str) -> bool:
        task = self._keyed.get(key)
        return task is not None and not task.done()

    def spawn(
        self,
        coro: Awaitable[T],
        *,
        name: str,
        key: Optional[str] = None,
        default: Any = None,
    ) -> Optional[asyncio.Task]:
        """Schedule ``coro``; returns ``None`` when a task with ``key`` is already running."""

        if key is not None and self.is_running(key):
            logger.debug("Background task already running", task=name, key=key)
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            return None

        task = asyncio.get_running_loop().create_task(self._contained(coro, name, default), name=name)
        self._tasks.add(task)
        if key is not None:
            self._keyed[key] = task
        task.add_done_callback(lambda done: self._forget(done, key))
        return task

    async def _contained(self, coro: Awaitable[T], name: str, default: Any) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Background task failed", task=name)
            return default

    def _forget(self, task: asyncio.Task, key: Optional[str]) -> None:
        self._tasks.discard(task)
        if key is not None and self._keyed.get(key) is task:
            del self._keyed[key]

    async def drain(self) -> None:
        """Wait until every task, including ones spawned while waiting, has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["BackgroundTasks"]
