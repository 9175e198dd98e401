"""
Tests for the tracking event bus and the asyncio-backed scheduler.
"""

import asyncio

import pytest
from medcourier.core.events import TrackingEventBus, TrackingEventType, make_tracking_event
from medcourier.core.scheduler import AsyncioScheduler


class TestTrackingEventBus:

    def test_make_event_shape(self):
        event = make_tracking_event("abc", TrackingEventType.ARRIVED, "Package has been delivered successfully")
        assert event["delivery_id"] == "abc"
        assert event["event_type"] == "ARRIVED"
        assert event["payload"] == {}
        assert event["timestamp"].endswith("Z")

    def test_recent_events_filtered_and_bounded(self):
        bus = TrackingEventBus(max_recent=3)
        for i in range(5):
            bus.publish_nowait(make_tracking_event("a" if i % 2 else "b", TrackingEventType.RESET, str(i)))

        assert [e["message"] for e in bus.get_recent_events()] == ["2", "3", "4"]
        assert [e["message"] for e in bus.get_recent_events(delivery_id="a")] == ["3"]

        bus.clear()
        assert bus.get_recent_events() == []

    @pytest.mark.asyncio
    async def test_subscriber_receives_events(self):
        bus = TrackingEventBus()
        received = []

        async def listen():
            stream = bus.subscribe()
            async for event in stream:
                received.append(event)
                if len(received) == 2:
                    break
            await stream.aclose()

        task = asyncio.create_task(listen())
        await asyncio.sleep(0)
        assert bus.subscriber_count == 1

        bus.publish_nowait(make_tracking_event("a", TrackingEventType.TRAFFIC_UPDATE, "one"))
        await bus.publish(make_tracking_event("a", TrackingEventType.POSITION_UPDATE, "two"))
        await asyncio.wait_for(task, timeout=1)

        assert [e["message"] for e in received] == ["one", "two"]
        assert bus.subscriber_count == 0


class TestAsyncioScheduler:

    @pytest.mark.asyncio
    async def test_call_later_runs_once(self):
        scheduler = AsyncioScheduler()
        calls = []
        scheduler.call_later(0.01, lambda: calls.append(1))

        await asyncio.sleep(0.05)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_call_every_until_cancelled(self):
        scheduler = AsyncioScheduler()
        calls = []
        handle = scheduler.call_every(0.01, lambda: calls.append(1))

        await asyncio.sleep(0.065)
        handle.cancel()
        seen = len(calls)
        await asyncio.sleep(0.05)

        assert seen >= 3
        assert len(calls) == seen
        assert handle.cancelled

    @pytest.mark.asyncio
    async def test_cancel_inside_callback(self):
        scheduler = AsyncioScheduler()
        calls = []
        handle = None

        def tick():
            calls.append(1)
            handle.cancel()

        handle = scheduler.call_every(0.01, tick)
        await asyncio.sleep(0.06)

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_timer(self):
        scheduler = AsyncioScheduler()
        calls = []

        def tick():
            calls.append(1)
            raise RuntimeError("boom")

        handle = scheduler.call_every(0.01, tick)
        await asyncio.sleep(0.045)
        handle.cancel()

        assert len(calls) >= 2
