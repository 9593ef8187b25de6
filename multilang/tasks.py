"""
Periodic maintenance task.

Runs a coroutine on a fixed schedule (first run after `initial_delay`, then
every `interval`) on the event loop, the asyncio counterpart of a repeating
scheduler task. A failing tick is logged and the schedule continues.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class MaintenanceTask:
    """Repeating background task driven by asyncio."""

    def __init__(
        self,
        tick: Callable[[], Awaitable[object]],
        interval: float,
        initial_delay: float = 0.0,
        name: str = "maintenance",
    ):
        """
        Args:
            tick: Coroutine function called on every run
            interval: Seconds between runs
            initial_delay: Seconds before the first run
            name: Task name (shown in logs)
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        if initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {initial_delay}")

        self._tick = tick
        self.interval = interval
        self.initial_delay = initial_delay
        self.name = name
        self._task: asyncio.Task | None = None

        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info(
            f"Started {self.name} task (delay {self.initial_delay}s, every {self.interval}s)"
        )

    async def _run(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            try:
                await self._tick()
                self.runs += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                logger.error(f"{self.name} task run failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Stopped {self.name} task after {self.runs} runs")
