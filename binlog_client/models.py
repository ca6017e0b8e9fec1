# 数据模型
from __future__ import annotations

import base64
import datetime
import decimal
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

# 记录类型（对外契约，不可更改）
TYPE_WRITE = "write"
TYPE_UPDATE = "update"
TYPE_DELETE = "delete"
TYPE_ROTATE = "rotate"

# 一条输出记录：{"type", "schema", "table", "row"} 或 {"type", "filename", "position"}
RowRecord = Dict[str, Any]
Headers = Dict[str, str]


# ──────────────────────────── 复制事件（解码器输出） ──────────────────────────── #

@dataclass(frozen=True)
class Rotate:
    """服务端切换 binlog 文件"""
    filename: str
    position: int


@dataclass(frozen=True)
class TableMap:
    """声明下一个行事件对应的 (database, table)"""
    table_id: int
    database: str
    table: str


@dataclass(frozen=True)
class WriteRows:
    table_id: int
    rows: Sequence[Sequence[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class UpdateRows:
    """rows 中每项是 (before, after)；下游只使用 after"""
    table_id: int
    rows: Sequence[Tuple[Sequence[Any], Sequence[Any]]] = field(default_factory=list)


@dataclass(frozen=True)
class DeleteRows:
    table_id: int
    rows: Sequence[Sequence[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Query:
    """原始 SQL 语句，仅用于识别 DDL"""
    sql: str


# ──────────────────────────── 输出记录 ──────────────────────────── #

def row_record(type_: str, schema: str, table: str, row: Dict[str, Any]) -> RowRecord:
    return {"type": type_, "schema": schema, "table": table, "row": row}


def rotate_record(filename: str, position: int) -> RowRecord:
    return {"type": TYPE_ROTATE, "filename": filename, "position": position}


def record_headers(record: RowRecord) -> Headers:
    """随消息发布的 headers：type 必有；行记录额外带 schema / table"""
    headers: Headers = {"type": record["type"]}
    if record["type"] != TYPE_ROTATE:
        headers["schema"] = record["schema"]
        headers["table"] = record["table"]
    return headers


def _json_default(value: Any) -> Any:
    """解码器产出的值（bytes / datetime / Decimal / set ...）转 JSON 友好形式"""
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def record_to_json(record: RowRecord, *, indent: Optional[int] = None) -> str:
    return json.dumps(record, ensure_ascii=False, default=_json_default, indent=indent)


def after_images(rows: Sequence[Tuple[Sequence[Any], Sequence[Any]]]) -> List[Sequence[Any]]:
    return [after for _before, after in rows]
