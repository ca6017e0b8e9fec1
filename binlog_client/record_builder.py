# 行记录构造 RecordBuilder
from __future__ import annotations

from typing import Any, Dict, Sequence

from .errors import ColumnCountMismatch, UnknownTable
from .models import RowRecord, row_record
from .schema_resolver import SchemaResolver


class RecordBuilder:
    """
    把列名与行值按序号配对成行记录：
    - 表不存在 -> UnknownTable
    - 列数与值个数不一致 -> ColumnCountMismatch，并剔除该表缓存，下一条事件重新查询
    - 列名重复时后者覆盖前者（正常表结构不会出现）
    """

    def __init__(self, resolver: SchemaResolver):
        self._resolver = resolver

    async def build(self, schema: str, table: str, type_: str, values: Sequence[Any]) -> RowRecord:
        columns = await self._resolver.columns(schema, table)
        if columns is None:
            raise UnknownTable(schema, table)
        if len(columns) != len(values):
            self._resolver.invalidate(schema, table)
            raise ColumnCountMismatch(len(columns), len(values), schema, table)

        row: Dict[str, Any] = dict(zip(columns, values))
        return row_record(type_, schema, table, row)
