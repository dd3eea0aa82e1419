import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundTaskQueue:
    """
    Runs coroutine functions one at a time on a single asyncio worker, outside the
    caller's control flow. A failing job is logged and the worker moves on; the
    submitter is never told about it.
    """

    def __init__(self, name: str = "background"):
        self.name = name
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.failed = 0

    def start(self) -> None:
        """Start the worker on the running loop. Safe to call more than once."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name=f"{self.name}-worker")

    def submit(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> None:
        self.start()
        self._queue.put_nowait((func, args, kwargs))

    async def _run(self) -> None:
        while True:
            func, args, kwargs = await self._queue.get()
            try:
                await func(*args, **kwargs)
            except Exception:
                self.failed += 1
                logger.exception(f"[{self.name}] background job {getattr(func, '__name__', func)} failed")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        await self.join()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._queue = None
