import asyncio

import pytest

from streaming.broadcast_channel import BroadcastChannel, FireAlarmEvent
from conftest import FIXED_NOW


@pytest.mark.asyncio
async def test_subscriber_receives_event_once():
    channel = BroadcastChannel()
    subscription = channel.subscribe()

    delivered = channel.publish(FireAlarmEvent(occurred_at=FIXED_NOW))

    assert delivered == 1
    event = await subscription.get(timeout=1)
    assert event.occurred_at == FIXED_NOW
    with pytest.raises(asyncio.TimeoutError):
        await subscription.get(timeout=0.01)


@pytest.mark.asyncio
async def test_late_subscriber_sees_no_history():
    channel = BroadcastChannel()
    channel.publish(FireAlarmEvent())

    late = channel.subscribe()

    assert late.queue.empty()


@pytest.mark.asyncio
async def test_publish_without_subscribers():
    assert BroadcastChannel().publish(FireAlarmEvent()) == 0


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent():
    channel = BroadcastChannel()
    subscription = channel.subscribe()

    channel.unsubscribe(subscription)
    channel.unsubscribe(subscription)

    assert channel.subscriber_count == 0
    assert channel.publish(FireAlarmEvent()) == 0
    assert subscription.deliver(FireAlarmEvent()) is False


@pytest.mark.asyncio
async def test_full_queue_only_affects_that_subscriber():
    channel = BroadcastChannel(max_pending=1)
    slow = channel.subscribe()
    fast = channel.subscribe()

    assert channel.publish(FireAlarmEvent()) == 2
    await fast.get(timeout=1)

    assert channel.publish(FireAlarmEvent()) == 1
    assert slow.dropped == 1
    assert fast.queue.qsize() == 1


def test_event_wire_format():
    payload = FireAlarmEvent(occurred_at=FIXED_NOW).to_dict()

    assert payload == {
        'event': 'fire-alarm',
        'triggered': True,
        'alertTime': FIXED_NOW.isoformat(),
        'occurredAt': FIXED_NOW.isoformat(),
    }
