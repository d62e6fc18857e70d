from __future__ import annotations

import asyncio

import pytest

from pipeline import events
from pipeline.events import EventChannel, make_event


def test_make_event_sets_type():
    assert make_event(events.PROGRESS, found=3) == {"type": "progress", "found": 3}


def test_make_event_rejects_unknown_type():
    with pytest.raises(ValueError):
        make_event("bogus")


async def test_channel_delivers_in_order_then_stops():
    channel = EventChannel(maxsize=10)
    for n in range(3):
        await channel.send(make_event(events.STATUS, n=n))
    channel.close()

    received = [event["n"] async for event in channel]

    assert received == [0, 1, 2]


async def test_send_after_close_raises():
    channel = EventChannel()
    channel.close()

    with pytest.raises(RuntimeError):
        await channel.send(make_event(events.STATUS))


async def test_producer_blocks_until_consumer_reads():
    channel = EventChannel(maxsize=1)
    await channel.send(make_event(events.STATUS, n=0))

    pending = asyncio.create_task(channel.send(make_event(events.STATUS, n=1)))
    await asyncio.sleep(0)
    assert not pending.done()

    iterator = channel.__aiter__()
    assert (await iterator.__anext__())["n"] == 0
    await asyncio.wait_for(pending, timeout=1)
    assert (await iterator.__anext__())["n"] == 1


async def test_detach_unblocks_producer_and_drops_later_events():
    channel = EventChannel(maxsize=1)
    await channel.send(make_event(events.STATUS, n=0))
    pending = asyncio.create_task(channel.send(make_event(events.STATUS, n=1)))
    await asyncio.sleep(0)

    channel.detach()
    await asyncio.wait_for(pending, timeout=1)
    await channel.send(make_event(events.STATUS, n=2))
    channel.close()

    assert channel.detached
    assert channel.closed
    assert channel.dropped == 1


async def test_close_on_full_queue_still_ends_iteration():
    channel = EventChannel(maxsize=2)
    await channel.send(make_event(events.STATUS, n=0))
    await channel.send(make_event(events.STATUS, n=1))
    channel.close()

    received = [event["n"] async for event in channel]

    assert received == [0, 1]
