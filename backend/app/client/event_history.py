import json
import math
from collections.abc import Sequence

from app.client.models import SubscriptionEvent

PAGE_SIZES = (10, 25, 50)


def _metadata_text(metadata: object) -> str:
    if metadata is None:
        return ""
    if isinstance(metadata, str):
        return metadata
    return json.dumps(metadata)


class EventHistory:
    """Client-side filter and pagination over an already fetched event list.

    Pages are 1-based. The current page is clamped whenever the filtered set
    shrinks, so a stale page number never renders an empty page.
    """

    def __init__(self, events: Sequence[SubscriptionEvent] = (), page_size: int = PAGE_SIZES[0]):
        self._validate_size(page_size)
        self.events = list(events)
        self._query = ""
        self._page_size = page_size
        self._page = 1

    @staticmethod
    def _validate_size(size: int) -> None:
        if size not in PAGE_SIZES:
            raise ValueError(f"Page size must be one of {PAGE_SIZES}")

    def set_events(self, events: Sequence[SubscriptionEvent]) -> None:
        self.events = list(events)

    @property
    def query(self) -> str:
        return self._query

    @query.setter
    def query(self, value: str) -> None:
        self._query = value or ""
        self._page = 1

    @property
    def page_size(self) -> int:
        return self._page_size

    @page_size.setter
    def page_size(self, size: int) -> None:
        self._validate_size(size)
        self._page_size = size
        self._page = 1

    @property
    def filtered(self) -> list[SubscriptionEvent]:
        needle = self._query.strip().lower()
        if not needle:
            return list(self.events)
        return [
            event
            for event in self.events
            if needle in (event.event_type or "").lower()
            or needle in _metadata_text(event.metadata).lower()
        ]

    @property
    def total(self) -> int:
        return len(self.filtered)

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self._page_size))

    @property
    def current_page(self) -> int:
        return min(max(1, self._page), self.total_pages)

    def go_to(self, page: int) -> int:
        self._page = min(max(1, page), self.total_pages)
        return self._page

    def next_page(self) -> int:
        return self.go_to(self.current_page + 1)

    def previous_page(self) -> int:
        return self.go_to(self.current_page - 1)

    @property
    def page_items(self) -> list[SubscriptionEvent]:
        start = (self.current_page - 1) * self._page_size
        return self.filtered[start : start + self._page_size]

    @property
    def range_label(self) -> str:
        total = self.total
        if total == 0:
            return "Showing 0 of 0"
        start = (self.current_page - 1) * self._page_size
        end = min(start + self._page_size, total)
        return f"Showing {start + 1}–{end} of {total}"
