import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from app.client.config import ClientSettings
from app.client.reconciler import countdown_text

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CountdownTicker:
    """Re-render the countdown every tick from ``target - now()``.

    The remaining time is recomputed from the wall clock on each tick, so a late
    tick never accumulates drift.
    """

    def __init__(
        self,
        on_tick: Callable[[str | None], None],
        interval: float | None = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        settings: ClientSettings | None = None,
    ):
        if interval is None:
            interval = (settings or ClientSettings()).COUNTDOWN_TICK_SECONDS
        self.on_tick = on_tick
        self.interval = interval
        self.clock = clock
        self.sleep = sleep
        self.target: datetime | None = None
        self.status: str | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, target: datetime | None, status: str | None) -> None:
        """(Re)start ticking toward ``target``; a None target renders nothing and stops."""
        self.stop()
        self.target = target
        self.status = status
        text = self.tick()
        if text is None or text == "Expired":
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def tick(self) -> str | None:
        text = countdown_text(self.target, self.status, self.clock())
        self.on_tick(text)
        return text

    async def _run(self) -> None:
        while True:
            await self.sleep(self.interval)
            text = self.tick()
            if text is None or text == "Expired":
                logger.debug("Countdown to %s finished", self.target)
                return
