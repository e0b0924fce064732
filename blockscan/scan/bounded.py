"""
Bounded wait group.

A wait group whose ``admit`` also takes a unit from a fixed-size
semaphore, so at most ``capacity`` tasks run at once no matter how many
are started. Typical use::

    group = BoundedWaitGroup(10)
    for item in items:
        await group.admit()
        asyncio.create_task(work(item, group))   # work() calls group.release()
    await group.join()
"""

from __future__ import annotations

import asyncio


class BoundedWaitGroup:
    """Counting semaphore plus outstanding-task counter.

    Invariants:
    - units held never exceed ``capacity``
    - ``join`` returns once every admitted unit has been released

    Every unit taken with a positive ``admit`` must be given back exactly
    once, with ``release()`` or a negative ``admit``.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._outstanding = 0
        self._done = asyncio.Event()
        self._done.set()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def outstanding(self) -> int:
        """Units admitted and not yet released."""
        return self._outstanding

    async def admit(self, delta: int = 1) -> None:
        """Take ``delta`` units (waiting for free capacity), or give back ``-delta``.

        Units are taken one at a time, so a ``delta`` larger than the
        capacity can only complete while other holders release.
        """
        if delta < 0:
            self._release(-delta)
            return

        for _ in range(delta):
            await self._semaphore.acquire()
            self._outstanding += 1
            self._done.clear()

    def release(self) -> None:
        """Give back one unit; same as ``admit(-1)``."""
        self._release(1)

    def _release(self, count: int) -> None:
        if count > self._outstanding:
            raise RuntimeError(
                f"released {count} units but only {self._outstanding} are outstanding"
            )
        for _ in range(count):
            self._outstanding -= 1
            self._semaphore.release()
        if self._outstanding == 0:
            self._done.set()

    async def join(self) -> None:
        """Wait until every admitted unit has been released."""
        await self._done.wait()
