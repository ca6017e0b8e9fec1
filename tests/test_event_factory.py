from pymysqlreplication.event import QueryEvent, RotateEvent, XidEvent
from pymysqlreplication.row_event import (
    DeleteRowsEvent,
    TableMapEvent,
    UpdateRowsEvent,
    WriteRowsEvent,
)

from binlog_client.event_factory import EventFactory
from binlog_client.models import DeleteRows, Query, Rotate, TableMap, UpdateRows, WriteRows


# 真实事件需要从数据包解码，这里只借用类型，属性直接赋值
class FakeRotate(RotateEvent):
    next_binlog = None
    position = None

    def __init__(self, next_binlog, position):
        self.next_binlog = next_binlog
        self.position = position


class FakeTableMap(TableMapEvent):
    table_id = None
    schema = None
    table = None

    def __init__(self, table_id, schema, table):
        self.table_id = table_id
        self.schema = schema
        self.table = table


def _rows_event(base):
    class Fake(base):
        table_id = None
        rows = None

        def __init__(self, table_id, rows):
            self.table_id = table_id
            self.rows = rows

    return Fake


FakeWrite = _rows_event(WriteRowsEvent)
FakeUpdate = _rows_event(UpdateRowsEvent)
FakeDelete = _rows_event(DeleteRowsEvent)


class FakeQuery(QueryEvent):
    query = None

    def __init__(self, query):
        self.query = query


class FakeXid(XidEvent):
    def __init__(self):
        pass


def test_rotate():
    assert EventFactory.from_binlog(FakeRotate("mysql-bin.000004", 4)) == Rotate("mysql-bin.000004", 4)


def test_table_map_decodes_bytes():
    ev = FakeTableMap(17, b"app", b"users")
    assert EventFactory.from_binlog(ev) == TableMap(17, "app", "users")


def test_write_rows_keep_column_order():
    ev = FakeWrite(17, [{"values": {"id": 1, "name": "a"}}, {"values": {"id": 2, "name": None}}])
    assert EventFactory.from_binlog(ev) == WriteRows(17, [[1, "a"], [2, None]])


def test_update_rows_pairs_before_and_after():
    ev = FakeUpdate(17, [{"before_values": {"id": 1, "name": "a"}, "after_values": {"id": 1, "name": "b"}}])
    assert EventFactory.from_binlog(ev) == UpdateRows(17, [([1, "a"], [1, "b"])])


def test_delete_rows():
    ev = FakeDelete(17, [{"values": {"id": 9, "name": "z"}}])
    assert EventFactory.from_binlog(ev) == DeleteRows(17, [[9, "z"]])


def test_query():
    assert EventFactory.from_binlog(FakeQuery("ALTER TABLE users ADD c INT")) == Query("ALTER TABLE users ADD c INT")


def test_other_events_are_ignored():
    assert EventFactory.from_binlog(FakeXid()) is None
    assert EventFactory.from_binlog(object()) is None
