import asyncio

import pytest
from starlette.websockets import WebSocketState

from dashboard.core.snapshot_store import SnapshotStore
from dashboard.websocket.manager import ConsumerState, LiveChannel


@pytest.fixture
def channel():
    store = SnapshotStore(capacity=10)
    channel = LiveChannel(store, heartbeat_interval=60)
    channel.attach()
    yield channel
    channel.detach()


@pytest.mark.asyncio
async def test_empty_store_sends_nothing_until_append(channel, fake_ws, drain_queue):
    ws = fake_ws()
    consumer = await channel.connect(ws)
    await drain_queue(consumer)

    assert ws.accepted
    assert ws.sent == []

    channel.store.append({"value": 1, "signal": "BUY UP"})
    await drain_queue(consumer)

    assert ws.types() == ["update"]
    assert ws.sent[0]["data"]["value"] == 1
    assert ws.sent[0]["data"]["timestamp"] == channel.store.latest().timestamp
    assert isinstance(ws.sent[0]["timestamp"], int)

    await channel.shutdown()


@pytest.mark.asyncio
async def test_connect_sends_single_snapshot_before_updates(channel, fake_ws, drain_queue):
    channel.store.append({"value": 1})
    channel.store.append({"value": 2})

    ws = fake_ws()
    consumer = await channel.connect(ws)
    # appended before the sender had a chance to run
    channel.store.append({"value": 3})
    await drain_queue(consumer)

    assert ws.types() == ["snapshot", "update"]
    assert ws.sent[0]["data"]["value"] == 2
    assert "timestamp" not in ws.sent[0]
    assert ws.sent[1]["data"]["value"] == 3

    await channel.shutdown()


@pytest.mark.asyncio
async def test_reconnect_gets_fresh_snapshot(channel, fake_ws, drain_queue):
    channel.store.append({"value": 1})

    first = fake_ws()
    consumer = await channel.connect(first)
    await drain_queue(consumer)
    await channel.disconnect(consumer)
    assert channel.client_count == 0

    channel.store.append({"value": 2})

    second = fake_ws()
    consumer = await channel.connect(second)
    await drain_queue(consumer)

    assert first.types() == ["snapshot"]
    assert second.types() == ["snapshot"]
    assert second.sent[0]["data"]["value"] == 2

    await channel.shutdown()


@pytest.mark.asyncio
async def test_failing_consumer_does_not_affect_others(channel, fake_ws, drain_queue):
    good_a, bad, good_b = fake_ws(), fake_ws(fail_on_send=True), fake_ws()
    consumers = [await channel.connect(ws) for ws in (good_a, bad, good_b)]
    assert channel.client_count == 3

    channel.store.append({"value": 1})
    for consumer in consumers:
        await drain_queue(consumer)

    assert good_a.types() == ["update"]
    assert good_b.types() == ["update"]
    assert bad.close_code == 1011
    assert channel.client_count == 2
    assert consumers[1].state is ConsumerState.CLOSED

    channel.store.append({"value": 2})
    await drain_queue(consumers[0])
    await drain_queue(consumers[2])
    assert [m["data"]["value"] for m in good_a.sent] == [1, 2]
    assert [m["data"]["value"] for m in good_b.sent] == [1, 2]

    await channel.shutdown()


@pytest.mark.asyncio
async def test_ping_gets_pong(channel, fake_ws, drain_queue):
    ws = fake_ws()
    consumer = await channel.connect(ws)

    channel.handle_message(consumer, '{"type": "ping"}')
    await drain_queue(consumer)

    assert ws.types() == ["pong"]
    assert isinstance(ws.sent[0]["timestamp"], int)

    await channel.shutdown()


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["not json", None, "[1, 2]", '{"type": 5}', '{"type": "subscribe"}', "42"])
async def test_unexpected_input_is_ignored(channel, fake_ws, drain_queue, text):
    ws = fake_ws()
    consumer = await channel.connect(ws)
    consumer.is_alive = False

    channel.handle_message(consumer, text)
    await drain_queue(consumer)

    assert ws.sent == []
    assert not ws.closed
    assert consumer.is_alive
    assert channel.client_count == 1

    await channel.shutdown()


@pytest.mark.asyncio
async def test_listen_only_consumer_survives_heartbeat_rounds(channel, fake_ws, drain_queue):
    ws = fake_ws()
    consumer = await channel.connect(ws)

    for _ in range(3):
        await channel.check_liveness()
    await drain_queue(consumer)

    assert ws.types() == ["heartbeat", "heartbeat", "heartbeat"]
    assert not ws.closed
    assert consumer.is_alive
    assert channel.client_count == 1

    await channel.shutdown()


@pytest.mark.asyncio
async def test_consumer_with_closed_transport_is_removed(channel, fake_ws, drain_queue):
    gone_ws, open_ws = fake_ws(), fake_ws()
    gone = await channel.connect(gone_ws)
    live = await channel.connect(open_ws)

    gone_ws.client_state = WebSocketState.DISCONNECTED
    await channel.check_liveness()
    await drain_queue(live)

    assert gone.id not in channel.consumers
    assert not gone.is_alive
    assert gone.state is ConsumerState.CLOSED
    # nothing left to close on a dead transport
    assert gone_ws.close_code is None
    assert channel.client_count == 1
    assert open_ws.types() == ["heartbeat"]

    await channel.shutdown()


@pytest.mark.asyncio
async def test_heartbeat_loop_keeps_passive_consumer(fake_ws):
    channel = LiveChannel(SnapshotStore(capacity=5), heartbeat_interval=0.05)
    await channel.start()

    ws = fake_ws()
    await channel.connect(ws)
    await asyncio.sleep(0.3)

    assert not ws.closed
    assert channel.client_count == 1
    assert ws.types().count("heartbeat") >= 3

    await channel.shutdown()
    assert ws.close_code == 1001


@pytest.mark.asyncio
async def test_slow_consumer_is_dropped(fake_ws, drain_queue, wait_until):
    store = SnapshotStore(capacity=10)
    channel = LiveChannel(store, heartbeat_interval=60, send_queue_size=2)
    channel.attach()

    slow_ws, fast_ws = fake_ws(block_on_send=True), fake_ws()
    await channel.connect(slow_ws)
    fast = await channel.connect(fast_ws)

    for v in range(5):
        store.append({"value": v})
        await drain_queue(fast)

    await wait_until(lambda: slow_ws.closed)
    assert slow_ws.close_code == 1008
    assert slow_ws.close_reason == "Consumer too slow"
    assert channel.client_count == 1
    assert [m["data"]["value"] for m in fast_ws.sent] == [0, 1, 2, 3, 4]

    await channel.shutdown()
    channel.detach()


@pytest.mark.asyncio
async def test_shutdown_closes_everyone(channel, fake_ws):
    sockets = [fake_ws(), fake_ws()]
    for ws in sockets:
        await channel.connect(ws)

    await channel.shutdown()

    assert channel.client_count == 0
    for ws in sockets:
        assert ws.close_code == 1001
        assert ws.close_reason == "Server shutting down"

    # appends after shutdown have nobody to reach
    channel.store.append({"value": 1})
    assert all(ws.types() == [] for ws in sockets)


@pytest.mark.asyncio
async def test_disconnect_is_idempotent(channel, fake_ws):
    ws = fake_ws()
    consumer = await channel.connect(ws)

    await channel.disconnect(consumer, code=1000)
    await channel.disconnect(consumer, code=1011)

    assert ws.close_code == 1000
    assert channel.client_count == 0


@pytest.mark.asyncio
async def test_broadcast_from_producer_thread(channel, fake_ws, drain_queue, wait_until):
    ws = fake_ws()
    consumer = await channel.connect(ws)

    await asyncio.to_thread(channel.store.append, {"value": 7})
    await wait_until(lambda: len(ws.sent) == 1)
    await drain_queue(consumer)

    assert ws.types() == ["update"]
    assert ws.sent[0]["data"]["value"] == 7

    await channel.shutdown()


@pytest.mark.asyncio
async def test_serve_handles_frames_until_disconnect(channel, fake_ws, wait_until):
    ws = fake_ws()
    task = asyncio.create_task(channel.serve(ws))
    await wait_until(lambda: channel.client_count == 1)

    ws.push_text('{"type": "ping"}')
    await wait_until(lambda: ws.types() == ["pong"])

    ws.inbound.put_nowait({"type": "websocket.receive", "bytes": b'{"type": "ping"}'})
    await wait_until(lambda: ws.types() == ["pong", "pong"])

    ws.push_disconnect()
    await asyncio.wait_for(task, 1.0)

    assert channel.client_count == 0


@pytest.mark.asyncio
async def test_consumers_info(channel, fake_ws):
    consumer = await channel.connect(fake_ws())

    info = channel.get_consumers_info()
    assert len(info) == 1
    assert info[0]["id"] == consumer.id
    assert info[0]["state"] == "open"
    assert info[0]["isAlive"] is True
    assert set(info[0]) == {"id", "state", "isAlive", "connectedAt", "lastActivity", "queued"}

    await channel.shutdown()
