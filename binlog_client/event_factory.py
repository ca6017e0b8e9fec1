# 事件工厂 EventFactory

from __future__ import annotations

from typing import Any, List, Optional

from pymysqlreplication.event import QueryEvent, RotateEvent
from pymysqlreplication.row_event import (
    DeleteRowsEvent,
    TableMapEvent,
    UpdateRowsEvent,
    WriteRowsEvent,
)

from .models import DeleteRows, Query, Rotate, TableMap, UpdateRows, WriteRows


def _ordered_values(values: Any) -> List[Any]:
    # pymysqlreplication 按列序构造 dict，这里只保留值的顺序，列名由 SchemaResolver 决定
    if isinstance(values, dict):
        return list(values.values())
    return list(values)


class EventFactory:
    """
    将 pymysqlreplication 解码出的事件转换为标准事件：
    - Rotate / TableMap / Write / Update / Delete / Query 六种
    - 其它事件（心跳、XID、GTID ...）返回 None，由调用方忽略
    """

    @staticmethod
    def from_binlog(ev: Any) -> Optional[Any]:
        if isinstance(ev, RotateEvent):
            return Rotate(filename=_text(ev.next_binlog), position=int(ev.position))
        if isinstance(ev, TableMapEvent):
            return TableMap(table_id=int(ev.table_id), database=_text(ev.schema), table=_text(ev.table))
        if isinstance(ev, WriteRowsEvent):
            return WriteRows(
                table_id=int(ev.table_id),
                rows=[_ordered_values(r["values"]) for r in ev.rows],
            )
        if isinstance(ev, UpdateRowsEvent):
            return UpdateRows(
                table_id=int(ev.table_id),
                rows=[(_ordered_values(r["before_values"]), _ordered_values(r["after_values"]))
                      for r in ev.rows],
            )
        if isinstance(ev, DeleteRowsEvent):
            return DeleteRows(
                table_id=int(ev.table_id),
                rows=[_ordered_values(r["values"]) for r in ev.rows],
            )
        if isinstance(ev, QueryEvent):
            return Query(sql=_text(ev.query))
        return None


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return "" if value is None else str(value)
