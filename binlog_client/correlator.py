# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：事件关联状态机 EventCorrelator
# 说明：
#   - TableMap 事件只记下 (database, table)，紧随其后的行事件消费它；
#   - 行事件处理前先清空 last_table_map，保证旧映射不会套到后续其它表的行上；
#   - Rotate 立即产出 rotate 记录；DDL 语句（CREATE/DROP/ALTER TABLE）整体清空列缓存；
#   - 只在事件循环线程调用，consume() 返回后再处理下一条事件，TableMap → Rows 不会被交错。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

from typing import Any, Optional, Sequence

from commons.base_logger import BaseLogger

from .dispatcher import EventDispatcher
from .errors import BinlogClientError, MissingTableMap
from .models import (
    TYPE_DELETE,
    TYPE_UPDATE,
    TYPE_WRITE,
    DeleteRows,
    Query,
    Rotate,
    TableMap,
    UpdateRows,
    WriteRows,
    after_images,
    rotate_record,
)
from .record_builder import RecordBuilder
from .schema_resolver import SchemaResolver

# 触发缓存失效的 DDL 前缀（大写 + 去首尾空白后匹配）
# RENAME TABLE / TRUNCATE / CREATE INDEX 不在其中，可能导致缓存过期，列数不匹配时会单表重查
DDL_PREFIXES = ("CREATE TABLE", "DROP TABLE", "ALTER TABLE")


def is_ddl(sql: str) -> bool:
    return sql.strip().upper().startswith(DDL_PREFIXES)


class EventCorrelator:
    """
    状态：
      Idle        last_table_map is None
      Mapped(tm)  等待与 tm 配对的行事件
    """

    def __init__(
        self,
        resolver: SchemaResolver,
        dispatcher: EventDispatcher,
        *,
        builder: Optional[RecordBuilder] = None,
        logger: Optional[BaseLogger] = None,
    ):
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._builder = builder or RecordBuilder(resolver)
        self.log = logger or BaseLogger(name="EventCorrelator")
        self._last_table_map: Optional[TableMap] = None

    @property
    def last_table_map(self) -> Optional[TableMap]:
        return self._last_table_map

    async def consume(self, event: Any) -> None:
        """推进状态机；产出的记录交给 dispatcher，错误交给 exception_handler。"""
        if isinstance(event, Rotate):
            await self._dispatcher.dispatch(rotate_record(event.filename, event.position))
        elif isinstance(event, TableMap):
            self._last_table_map = event
        elif isinstance(event, WriteRows):
            await self._handle_rows(event, TYPE_WRITE, event.rows)
        elif isinstance(event, UpdateRows):
            await self._handle_rows(event, TYPE_UPDATE, after_images(event.rows))
        elif isinstance(event, DeleteRows):
            await self._handle_rows(event, TYPE_DELETE, event.rows)
        elif isinstance(event, Query):
            self._handle_query(event)

    async def _handle_rows(self, event: Any, type_: str, rows: Sequence[Sequence[Any]]) -> None:
        tm, self._last_table_map = self._last_table_map, None
        if tm is None:
            self._dispatcher.notify_exception(MissingTableMap(type(event).__name__))
            return
        if tm.table_id != event.table_id:
            self.log.log_warning(
                f"[TableId] {type(event).__name__} table_id={event.table_id} "
                f"paired with map of {tm.database}.{tm.table} (table_id={tm.table_id})"
            )

        for values in rows:
            try:
                record = await self._builder.build(tm.database, tm.table, type_, values)
            except BinlogClientError as e:
                self._dispatcher.notify_exception(e)
                continue
            await self._dispatcher.dispatch(record)

    def _handle_query(self, event: Query) -> None:
        if is_ddl(event.sql):
            if self.log.is_debug():
                self.log.log_debug(f"[DDL] {event.sql.strip()[:120]!r}, clear column mapping")
            self._resolver.invalidate_all()
