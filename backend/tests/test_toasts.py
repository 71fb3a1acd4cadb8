"""Tests for the toast sink."""

import pytest

from app.client.toasts import (
    DEFAULT_DURATION_MS,
    MAX_DURATION_MS,
    MIN_DURATION_MS,
    ToastSink,
    ToastType,
    clamp_duration,
)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestClampDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, DEFAULT_DURATION_MS),
            (500, MIN_DURATION_MS),
            (2500, 2500),
            (60000, MAX_DURATION_MS),
        ],
    )
    def test_bounds(self, value, expected):
        assert clamp_duration(value) == expected


class TestToastSink:
    def test_at_most_three_visible(self):
        sink = ToastSink()
        for index in range(5):
            sink.info(f"toast {index}")
        assert [t.message for t in sink.visible] == ["toast 0", "toast 1", "toast 2"]
        assert [t.message for t in sink.queue] == ["toast 3", "toast 4"]

    def test_dismiss_promotes_queued(self):
        changes = []
        sink = ToastSink(max_visible=1, on_change=changes.append)
        first = sink.success("Saved")
        sink.error("Failed")

        assert sink.dismiss(first.id) is True
        assert [t.message for t in sink.visible] == ["Failed"]
        assert sink.visible[0].type is ToastType.ERROR
        assert len(changes) == 2

    def test_dismiss_queued_and_unknown(self):
        sink = ToastSink(max_visible=1)
        sink.info("a")
        queued = sink.info("b")
        assert sink.dismiss(queued.id) is True
        assert list(sink.queue) == []
        assert sink.dismiss(999) is False

    def test_expire_uses_duration(self):
        clock = FakeClock()
        sink = ToastSink(max_visible=2, clock=clock)
        short = sink.show("short", ToastType.WARNING, duration_ms=1500)
        sink.show("long", "info", duration_ms=8000)
        sink.show("waiting")

        clock.now += 2
        expired = sink.expire()

        assert expired == [short]
        assert [t.message for t in sink.visible] == ["long", "waiting"]
        assert sink.visible[1].shown_at == clock.now

    def test_notify_accepts_string_type(self):
        sink = ToastSink()
        assert sink.notify("hello", "success").type is ToastType.SUCCESS
        with pytest.raises(ValueError):
            sink.notify("hello", "loud")

    def test_clear(self):
        changes = []
        sink = ToastSink(on_change=changes.append)
        sink.warning("x")
        sink.clear()
        assert sink.visible == []
        assert changes[-1] == []
