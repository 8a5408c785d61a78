"""
Frame Scheduler - Suspension primitive for the command executor
Time only moves when the simulation ticks, so programs run the same headless or in real time
"""

import asyncio

# Float slack when comparing accumulated frame time against sleep deadlines
TIME_EPSILON = 1e-9


class FrameScheduler:
    """Clock plus awaitable sleeps, released by the simulation tick"""

    def __init__(self, start_time=0.0):
        self._now = start_time
        self._frame = 0
        self._waiters = []  # (deadline or None, frame registered, future)

    def now(self):
        """Current simulation time in seconds"""
        return self._now

    @property
    def frame(self):
        return self._frame

    async def sleep(self, seconds):
        """Suspend until at least `seconds` of simulation time have passed"""
        if seconds <= 0:
            return
        await self._wait(self._now + seconds)

    async def next_frame(self):
        """Suspend until the next tick"""
        await self._wait(None)

    def _wait(self, deadline):
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((deadline, self._frame, future))
        return future

    def advance(self, dt):
        """Move the clock forward one frame"""
        self._now += dt
        self._frame += 1

    def pending(self):
        return sum(1 for _, _, future in self._waiters if not future.done())

    def release_due(self):
        """
        Wake every waiter whose deadline or frame has arrived

        Waiters registered during this frame stay pending until the next one.

        Returns:
            int: number of waiters woken
        """
        released = 0
        remaining = []
        for deadline, frame, future in self._waiters:
            if future.done():
                continue
            if deadline is None:
                due = self._frame > frame
            else:
                due = self._now >= deadline - TIME_EPSILON
            if due:
                future.set_result(None)
                released += 1
            else:
                remaining.append((deadline, frame, future))
        self._waiters = remaining
        return released

    def cancel_all(self):
        """Drop every pending wait"""
        for _, _, future in self._waiters:
            if not future.done():
                future.cancel()
        self._waiters = []
