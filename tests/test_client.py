import asyncio

import pytest

from binlog_client import BinlogClient, BinlogClientOptions, LocalEventBus, Pump, WriteQueue
from binlog_client.errors import ReplicationStreamError, UnknownTable
from binlog_client.models import Query, Rotate, TableMap, UpdateRows, WriteRows
from binlog_client.reader import StreamEnded

TABLES = {("app", "users"): ["id", "name"]}


def schema_query(database, table):
    return TABLES.get((database, table), [])


class ScriptedReader:
    """代替 BinlogReader：start 后把脚本事件依次放入队列"""

    def __init__(self, script):
        self.script = list(script)
        self.stopped = False
        self._task = None

    def __call__(self, options):
        self.options = options
        return self

    @property
    def position(self):
        return "mysql-bin.000001", 4

    def start(self, loop, queue):
        async def feed():
            for item in self.script:
                await queue.put(item)

        self._task = loop.create_task(feed())
        return self._task

    async def stop(self):
        self.stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


def _client(script, **kwargs):
    reader = ScriptedReader(script)
    client = BinlogClient(BinlogClientOptions(**kwargs.pop("options", {})),
                          schema_query=schema_query, reader_factory=reader, **kwargs)
    return client, reader


def test_records_flow_to_handler_and_end_handler():
    script = [
        Rotate("mysql-bin.000001", 4),
        TableMap(17, "app", "users"),
        WriteRows(17, [[1, "a"]]),
        TableMap(17, "app", "users"),
        UpdateRows(17, [([1, "a"], [1, "b"])]),
        StreamEnded(),
    ]

    async def go():
        client, reader = _client(script)
        got, ended = [], asyncio.Event()
        client.handler(got.append).end_handler(ended.set)
        await client.start()
        await asyncio.wait_for(ended.wait(), 5)
        await client.stop()
        return client, reader, got

    client, reader, got = asyncio.run(go())
    assert got == [
        {"type": "rotate", "filename": "mysql-bin.000001", "position": 4},
        {"type": "write", "schema": "app", "table": "users", "row": {"id": 1, "name": "a"}},
        {"type": "update", "schema": "app", "table": "users", "row": {"id": 1, "name": "b"}},
    ]
    assert client.consumed == 5
    assert reader.stopped is True
    assert client.position == ("mysql-bin.000001", 4)


def test_stream_error_is_reported_then_end_fires_once():
    async def go():
        client, _ = _client([StreamEnded(ConnectionError("lost"))])
        errors, ends = [], []
        client.exception_handler(errors.append).end_handler(lambda: ends.append(1))
        await client.start()
        while not ends:
            await asyncio.sleep(0.01)
        await client.stop()
        await client.stop()
        return errors, ends

    errors, ends = asyncio.run(go())
    assert len(errors) == 1
    assert isinstance(errors[0], ReplicationStreamError)
    assert isinstance(errors[0].cause, ConnectionError)
    assert ends == [1]


def test_record_errors_do_not_stop_the_stream():
    """某条记录失败（未知表）：上报后继续处理后续事件"""
    script = [
        TableMap(5, "app", "ghost"),
        WriteRows(5, [[1]]),
        TableMap(17, "app", "users"),
        WriteRows(17, [[2, "b"]]),
        StreamEnded(),
    ]

    async def go():
        client, _ = _client(script)
        got, errors, ended = [], [], asyncio.Event()
        client.handler(got.append).exception_handler(errors.append).end_handler(ended.set)
        await client.start()
        await asyncio.wait_for(ended.wait(), 5)
        await client.stop()
        return got, errors

    got, errors = asyncio.run(go())
    assert [type(e) for e in errors] == [UnknownTable]
    assert [r["row"] for r in got] == [{"id": 2, "name": "b"}]


def test_pause_holds_events_until_resume():
    script = [TableMap(17, "app", "users"), WriteRows(17, [[1, "a"]]), StreamEnded()]

    async def go():
        client, _ = _client(script)
        got, ended = [], asyncio.Event()
        client.handler(got.append).end_handler(ended.set)
        client.pause()
        assert client.paused
        await client.start()
        await asyncio.sleep(0.05)
        held = list(got)
        client.resume()
        await asyncio.wait_for(ended.wait(), 5)
        await client.stop()
        return held, got

    held, got = asyncio.run(go())
    assert held == []
    assert len(got) == 1


def test_start_twice_is_rejected():
    async def go():
        client, _ = _client([])
        await client.start()
        with pytest.raises(RuntimeError):
            await client.start()
        await client.stop()
        assert client.running is False

    asyncio.run(go())


def test_consume_directly_without_reader():
    async def go():
        client = BinlogClient(schema_query=schema_query)
        got = []
        client.handler(got.append)
        await client.consume(TableMap(1, "app", "users"))
        await client.consume(WriteRows(1, [[3, "c"]]))
        await client.consume(Query("ALTER TABLE users ADD COLUMN age INT"))
        client.resolver.close()
        return got

    assert asyncio.run(go()) == [
        {"type": "write", "schema": "app", "table": "users", "row": {"id": 3, "name": "c"}},
    ]


def test_publish_to_local_event_bus():
    script = [TableMap(17, "app", "users"), WriteRows(17, [[1, "a"]]), StreamEnded()]

    async def go():
        bus = LocalEventBus()
        got = []
        bus.consumer("cdc.users", got.append)
        client, _ = _client(script, publisher=bus,
                            options={"publish_message": True, "message_address": "cdc.users"})
        ended = asyncio.Event()
        client.end_handler(ended.set)
        await client.start()
        await asyncio.wait_for(ended.wait(), 5)
        await client.stop()
        return got

    got = asyncio.run(go())
    assert len(got) == 1
    assert got[0].headers == {"type": "write", "schema": "app", "table": "users"}
    assert got[0].body["row"] == {"id": 1, "name": "a"}


def test_pump_from_client_into_write_queue():
    """client 作为读流接入 Pump：写队列满时暂停，消费后恢复"""
    script = []
    for i in range(8):
        script += [TableMap(17, "app", "users"), WriteRows(17, [[i, "n"]])]
    script.append(StreamEnded())

    async def go():
        client, _ = _client(script)
        q = WriteQueue()
        ended, errors = asyncio.Event(), []
        client.end_handler(ended.set).exception_handler(errors.append)
        pump = Pump(client, q, write_queue_max_size=4).start()
        await client.start()

        polled = []
        while not ended.is_set():
            await asyncio.sleep(0.01)
            polled.extend(q.poll_all())
        polled.extend(q.poll_all())
        pump.stop()
        await client.stop()
        return pump, polled, errors

    pump, polled, errors = asyncio.run(go())
    assert errors == []
    assert [r["row"]["id"] for r in polled] == list(range(8))
    assert pump.paused_times >= 1
