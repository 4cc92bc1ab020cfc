"""
dexter — task result and progress channels

File: src/dexter/pipeline/channels.py
Last updated: 2026-10-19

Purpose
- ``OneShot``: single final result of a background task, polled without
  awaiting.
- ``ProgressChannel``: bounded many-to-one stream of ``Progress`` reports.

Functional requirements
- Dropping a receiver abandons the task without cancelling it; whatever the
  task sends afterwards is discarded.
- Progress senders suspend while the channel is full and never block after
  the receiver is closed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Generic, TypeVar

from dexter.constants import PROGRESS_CHANNEL_CAPACITY
from dexter.plugins.base import Progress

T = TypeVar("T")


class ChannelClosedError(RuntimeError):
    """Raised when reading a result from a receiver that was closed."""


class OneShot(Generic[T]):
    """Future-backed single-value channel."""

    def __init__(self) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ready(self) -> bool:
        return not self._closed and self._future.done()

    def send(self, value: T) -> None:
        if self._closed or self._future.done():
            return
        self._future.set_result(value)

    def fail(self, error: BaseException) -> None:
        if self._closed or self._future.done():
            return
        self._future.set_exception(error)

    def result(self) -> T:
        """Return the value or raise the task's exception; only valid when ``ready``."""

        if self._closed:
            raise ChannelClosedError("receiver was closed")
        return self._future.result()

    def close(self) -> None:
        self._closed = True
        if self._future.done():
            # Mark any stored exception as retrieved.
            if not self._future.cancelled():
                self._future.exception()
            return
        self._future.cancel()


async def _forward(awaitable: Awaitable[T], channel: OneShot[T]) -> None:
    try:
        value = await awaitable
    except Exception as exc:  # noqa: BLE001 - every task failure is reported through the channel
        channel.fail(exc)
    else:
        channel.send(value)


class TaskSpawner:
    """Creates fire-and-forget tasks that report through a ``OneShot``."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def spawn(self, awaitable: Awaitable[T], *, name: str | None = None) -> OneShot[T]:
        channel: OneShot[T] = OneShot()
        task = asyncio.get_running_loop().create_task(_forward(awaitable, channel), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return channel

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every spawned task to finish; used at shutdown and in tests."""

        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)


class ProgressChannel:
    """Bounded queue of ``Progress`` reports with a closable receiving end."""

    def __init__(self, capacity: int = PROGRESS_CHANNEL_CAPACITY) -> None:
        self._queue: asyncio.Queue[Progress] = asyncio.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, progress: Progress) -> None:
        if self._closed:
            return
        await self._queue.put(progress)

    def drain(self) -> list[Progress]:
        items: list[Progress] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return items

    def close(self) -> None:
        self._closed = True
        # Wake senders blocked on a full queue; their values are discarded.
        self.drain()


__all__ = ["ChannelClosedError", "OneShot", "ProgressChannel", "TaskSpawner"]
