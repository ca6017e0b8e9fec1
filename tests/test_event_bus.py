import asyncio

from binlog_client.event_bus import LocalEventBus, Message

ROW = {"type": "write", "schema": "app", "table": "users", "row": {"id": 1}}
HEADERS = {"type": "write", "schema": "app", "table": "users"}


def test_publish_reaches_every_consumer():
    bus = LocalEventBus()
    a, b = [], []
    bus.consumer("cdc", a.append)
    bus.consumer("cdc", b.append)
    bus.consumer("other", lambda m: (_ for _ in ()).throw(AssertionError("wrong address")))

    bus.publish("cdc", ROW, HEADERS)

    assert a == b == [Message("cdc", ROW, HEADERS)]


def test_send_round_robin():
    """send 点对点：在订阅者之间轮询"""
    bus = LocalEventBus()
    a, b = [], []
    bus.consumer("cdc", a.append)
    bus.consumer("cdc", b.append)

    for _ in range(4):
        bus.send("cdc", ROW, HEADERS)

    assert len(a) == len(b) == 2


def test_send_without_consumer_is_dropped():
    LocalEventBus().send("nobody", ROW, HEADERS)


def test_unregister():
    bus = LocalEventBus()
    got = []
    unregister = bus.consumer("cdc", got.append)
    unregister()
    unregister()

    bus.publish("cdc", ROW, HEADERS)

    assert got == []
    assert bus.consumers("cdc") == []


def test_headers_are_copied():
    bus = LocalEventBus()
    got = []
    bus.consumer("cdc", got.append)
    headers = dict(HEADERS)

    bus.publish("cdc", ROW, headers)
    headers["type"] = "changed"

    assert got[0].headers["type"] == "write"


def test_async_consumers_are_scheduled_and_drained():
    async def go():
        bus = LocalEventBus()
        got = []

        async def slow(msg):
            await asyncio.sleep(0.01)
            got.append(msg.body)

        async def broken(msg):
            raise RuntimeError("consumer bug")

        bus.consumer("cdc", slow)
        bus.consumer("cdc", broken)
        bus.publish("cdc", ROW, HEADERS)
        assert got == []
        await bus.drain()
        return got

    assert asyncio.run(go()) == [ROW]
