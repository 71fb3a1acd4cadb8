import itertools
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 4000
MIN_DURATION_MS = 1500
MAX_DURATION_MS = 15000


class ToastType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass
class Toast:
    id: int
    message: str
    type: ToastType = ToastType.INFO
    duration_ms: int = DEFAULT_DURATION_MS
    shown_at: float | None = None


def clamp_duration(duration_ms: int | None) -> int:
    if duration_ms is None:
        return DEFAULT_DURATION_MS
    return max(MIN_DURATION_MS, min(MAX_DURATION_MS, int(duration_ms)))


class ToastSink:
    """Bounded on-screen toast stack.

    At most ``max_visible`` toasts are shown; the rest wait in FIFO order and
    are promoted as visible ones are dismissed or expire.
    """

    MAX_VISIBLE = 3

    def __init__(
        self,
        max_visible: int = MAX_VISIBLE,
        on_change: Callable[[list[Toast]], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_visible = max_visible
        self.on_change = on_change
        self.clock = clock
        self.visible: list[Toast] = []
        self.queue: deque[Toast] = deque()
        self._ids = itertools.count(1)

    def show(
        self,
        message: str,
        type: ToastType | str = ToastType.INFO,
        duration_ms: int | None = None,
    ) -> Toast:
        toast = Toast(
            id=next(self._ids),
            message=message,
            type=ToastType(type),
            duration_ms=clamp_duration(duration_ms),
        )
        self.queue.append(toast)
        self._promote()
        return toast

    def notify(self, message: str, type: ToastType | str = ToastType.INFO) -> Toast:
        return self.show(message, ToastType(type))

    def success(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(message, ToastType.SUCCESS, duration_ms)

    def error(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(message, ToastType.ERROR, duration_ms)

    def info(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(message, ToastType.INFO, duration_ms)

    def warning(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(message, ToastType.WARNING, duration_ms)

    def dismiss(self, toast_id: int) -> bool:
        for index, toast in enumerate(self.visible):
            if toast.id == toast_id:
                del self.visible[index]
                self._promote(changed=True)
                return True
        for toast in self.queue:
            if toast.id == toast_id:
                self.queue.remove(toast)
                return True
        return False

    def expire(self) -> list[Toast]:
        """Dismiss every visible toast whose duration has elapsed."""
        now = self.clock()
        expired = [
            t for t in self.visible
            if t.shown_at is not None and now - t.shown_at >= t.duration_ms / 1000
        ]
        if expired:
            self.visible = [t for t in self.visible if t not in expired]
            self._promote(changed=True)
        return expired

    def clear(self) -> None:
        self.visible.clear()
        self.queue.clear()
        self._emit()

    def _promote(self, changed: bool = False) -> None:
        while len(self.visible) < self.max_visible and self.queue:
            toast = self.queue.popleft()
            toast.shown_at = self.clock()
            self.visible.append(toast)
            logger.debug("Toast %s shown: %s", toast.id, toast.message)
            changed = True
        if changed:
            self._emit()

    def _emit(self) -> None:
        if self.on_change is not None:
            self.on_change(list(self.visible))
