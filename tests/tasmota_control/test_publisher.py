"""
Unit tests for UpdatePublisher replay, fan-out and completion.

No network: states are published directly.
"""

import asyncio
import threading

import pytest

from tasmota_control.devices.models import DeviceState, Health, PowerState
from tasmota_control.state.publisher import UpdatePublisher


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _state(device_id: str = "TASMOTA_LIGHT", power: PowerState = PowerState.ON) -> DeviceState:
    return DeviceState(device_id=device_id, power=power, health=Health.OK)


async def _take(subscription, count: int, timeout: float = 1.0) -> list[DeviceState]:
    async def _collect():
        items = []
        async for state in subscription:
            items.append(state)
            if len(items) == count:
                break
        return items

    return await asyncio.wait_for(_collect(), timeout)


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------

class TestReplay:
    """Late subscribers receive the full history first."""

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_history(self):
        publisher = UpdatePublisher()
        published = [_state(power=PowerState.ON), _state("TASMOTA_SPEAKER"), _state(power=PowerState.OFF)]
        for state in published:
            publisher.publish(state)

        received = await _take(publisher.subscribe(), 3)
        assert received == published

    @pytest.mark.asyncio
    async def test_history_before_live_events(self):
        publisher = UpdatePublisher()
        first = _state(power=PowerState.ON)
        publisher.publish(first)
        subscription = publisher.subscribe()

        live = _state(power=PowerState.OFF)
        publisher.publish(live)

        assert await _take(subscription, 2) == [first, live]

    @pytest.mark.asyncio
    async def test_bounded_history_keeps_newest(self):
        publisher = UpdatePublisher(max_history=2)
        states = [_state(power=p) for p in (PowerState.ON, PowerState.OFF, PowerState.UNKNOWN)]
        for state in states:
            publisher.publish(state)

        assert publisher.history == tuple(states[1:])
        assert await _take(publisher.subscribe(), 2) == states[1:]


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

class TestFanOut:
    """Every subscriber sees every event independently."""

    @pytest.mark.asyncio
    async def test_live_event_wakes_waiting_subscribers(self):
        publisher = UpdatePublisher()
        subs = [publisher.subscribe() for _ in range(3)]
        waiters = [asyncio.create_task(_take(s, 1)) for s in subs]
        await asyncio.sleep(0.01)

        event = _state()
        publisher.publish(event)

        results = await asyncio.gather(*waiters)
        assert results == [[event]] * 3

    @pytest.mark.asyncio
    async def test_subscriptions_have_independent_cursors(self):
        publisher = UpdatePublisher()
        a = publisher.subscribe()
        publisher.publish(_state(power=PowerState.ON))
        publisher.publish(_state(power=PowerState.OFF))

        assert len(await _take(a, 2)) == 2
        b = publisher.subscribe()
        assert len(await _take(b, 2)) == 2

    @pytest.mark.asyncio
    async def test_publish_from_other_thread(self):
        publisher = UpdatePublisher()
        subscription = publisher.subscribe()
        waiter = asyncio.create_task(_take(subscription, 1))
        await asyncio.sleep(0.01)

        event = _state("TASMOTA_SPEAKER")
        thread = threading.Thread(target=publisher.publish, args=(event,))
        thread.start()
        thread.join()

        assert await waiter == [event]

    @pytest.mark.asyncio
    async def test_concurrent_publishers_from_threads(self):
        """Many threads publishing at once lose and reorder nothing per device."""
        threads_count, per_thread = 8, 50
        total = threads_count * per_thread
        publisher = UpdatePublisher()
        subscription = publisher.subscribe()
        reader = asyncio.create_task(_take(subscription, total, timeout=5.0))
        await asyncio.sleep(0)

        start = threading.Barrier(threads_count)

        def _sequence(n: int) -> list[DeviceState]:
            # Alternating power, ending OFF, on a device of its own
            return [
                _state(f"dev-{n}", PowerState.ON if (per_thread - i) % 2 == 0 else PowerState.OFF)
                for i in range(per_thread)
            ]

        def _publish_all(n: int) -> None:
            start.wait()
            for state in _sequence(n):
                assert publisher.publish(state)

        threads = [threading.Thread(target=_publish_all, args=(n,)) for n in range(threads_count)]
        for thread in threads:
            thread.start()
        received = await reader
        for thread in threads:
            thread.join()

        assert len(publisher.history) == total
        assert len(received) == total
        assert received == list(publisher.history)

        snapshot = publisher.snapshot()
        for n in range(threads_count):
            expected = _sequence(n)
            assert [s for s in received if s.device_id == f"dev-{n}"] == expected
            assert snapshot[f"dev-{n}"] == expected[-1]
            assert snapshot[f"dev-{n}"].power == PowerState.OFF


# ---------------------------------------------------------------------------
# Completion and bookkeeping
# ---------------------------------------------------------------------------

class TestCompletion:

    @pytest.mark.asyncio
    async def test_complete_ends_after_drain(self):
        publisher = UpdatePublisher()
        publisher.publish(_state())
        subscription = publisher.subscribe()
        publisher.complete()

        received = [s async for s in subscription]
        assert received == [_state()]

    @pytest.mark.asyncio
    async def test_complete_wakes_waiting_subscriber(self):
        publisher = UpdatePublisher()
        subscription = publisher.subscribe()

        async def _drain():
            return [s async for s in subscription]

        task = asyncio.create_task(_drain())
        await asyncio.sleep(0.01)
        publisher.complete()

        assert await asyncio.wait_for(task, 1.0) == []

    def test_publish_after_complete_is_dropped(self):
        publisher = UpdatePublisher()
        publisher.complete()
        assert publisher.publish(_state()) is False
        assert publisher.history == ()

    @pytest.mark.asyncio
    async def test_closed_subscription_stops(self):
        publisher = UpdatePublisher()
        subscription = publisher.subscribe()
        assert publisher.subscriber_count == 1

        subscription.close()
        assert subscription.closed
        assert publisher.subscriber_count == 0
        assert [s async for s in subscription] == []

    def test_latest_and_snapshot(self):
        publisher = UpdatePublisher()
        publisher.publish(_state(power=PowerState.ON))
        publisher.publish(_state("TASMOTA_SPEAKER", PowerState.OFF))
        publisher.publish(_state(power=PowerState.OFF))

        assert publisher.latest("TASMOTA_LIGHT").power == PowerState.OFF
        assert publisher.latest("missing") is None
        assert set(publisher.snapshot()) == {"TASMOTA_LIGHT", "TASMOTA_SPEAKER"}
