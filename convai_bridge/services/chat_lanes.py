from __future__ import annotations

import asyncio
import logging

from convai_bridge.services.contracts import LaneJob

logger = logging.getLogger(__name__)


class ChatLanePool:
    """Bounded worker pool with one sequential lane per chat.

    Jobs submitted for the same key run one after another in submission
    order; lanes for different keys run concurrently, at most ``concurrency``
    jobs at a time. ``submit`` waits while ``max_pending`` jobs are queued or
    running.
    """

    def __init__(self, *, concurrency: int, max_pending: int = 100) -> None:
        self._max_pending = max_pending
        self._slots = asyncio.Semaphore(concurrency)
        self._lanes: dict[str, asyncio.Queue[LaneJob]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}
        self._pending = 0
        self._capacity = asyncio.Condition()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        return self._pending

    async def submit(self, key: str, job: LaneJob) -> None:
        async with self._capacity:
            await self._capacity.wait_for(lambda: self._pending < self._max_pending)
            self._pending += 1
            self._idle.clear()

        lane = self._lanes.get(key)
        if lane is None:
            lane = asyncio.Queue()
            self._lanes[key] = lane
            self._workers[key] = asyncio.create_task(self._drain(key, lane), name=f"chat-lane-{key}")
        lane.put_nowait(job)

    async def join(self) -> None:
        await self._idle.wait()

    async def close(self) -> None:
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._lanes.clear()
        self._workers.clear()

        # Jobs still queued in cancelled lanes never release their slot.
        async with self._capacity:
            self._pending = 0
            self._idle.set()
            self._capacity.notify_all()

    async def _drain(self, key: str, lane: asyncio.Queue[LaneJob]) -> None:
        while True:
            try:
                job = lane.get_nowait()
            except asyncio.QueueEmpty:
                self._lanes.pop(key, None)
                self._workers.pop(key, None)
                return

            try:
                async with self._slots:
                    await job()
            except Exception:  # noqa: BLE001
                logger.exception("chat lane job failed", extra={"chat_id": key})
            finally:
                await self._release()

    async def _release(self) -> None:
        async with self._capacity:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()
            self._capacity.notify_all()
