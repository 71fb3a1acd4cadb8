import asyncio
import logging
from collections.abc import Awaitable, Callable

from app.client.api import ApiError
from app.client.config import ClientSettings

logger = logging.getLogger(__name__)


class IntervalPoller:
    """Run an async refresh on a fixed interval until stopped.

    A failed refresh is logged and the next tick still runs; the realtime
    channels are best effort, so polling is the path that catches up.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        interval: float,
        name: str = "poller",
        run_immediately: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.callback = callback
        self.interval = interval
        self.name = name
        self.run_immediately = run_immediately
        self.sleep = sleep
        self.runs = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        if self.run_immediately:
            await self._invoke()
        while True:
            await self.sleep(self.interval)
            await self._invoke()

    async def _invoke(self) -> None:
        self.runs += 1
        try:
            await self.callback()
        except ApiError as exc:
            logger.warning("%s refresh failed: %s", self.name, exc)


def dashboard_poller(
    callback: Callable[[], Awaitable[None]], settings: ClientSettings | None = None
) -> IntervalPoller:
    settings = settings or ClientSettings()
    return IntervalPoller(callback, settings.DASHBOARD_REFRESH_SECONDS, name="dashboard")


def order_tracking_poller(
    callback: Callable[[], Awaitable[None]], settings: ClientSettings | None = None
) -> IntervalPoller:
    settings = settings or ClientSettings()
    return IntervalPoller(callback, settings.ORDER_TRACKING_SECONDS, name="order-tracking")
