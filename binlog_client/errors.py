# 异常定义
from __future__ import annotations


class BinlogClientError(Exception):
    """所有客户端异常的基类；经 exception_handler 上报，不会中断复制流。"""


class ConfigurationError(BinlogClientError, ValueError):
    """配置非法（例如 publish_message 与 send_message 同时开启）。"""


class MissingTableMap(BinlogClientError):
    """行事件之前没有 TableMap 事件。"""

    def __init__(self, event_name: str = "rows"):
        super().__init__(f"Missing table map event before {event_name}")
        self.event_name = event_name


class UnknownTable(BinlogClientError):
    """information_schema 查不到该表的列。"""

    def __init__(self, schema: str, table: str):
        super().__init__(f"Missing table information {schema}.{table}")
        self.schema = schema
        self.table = table


class ColumnCountMismatch(BinlogClientError):
    """缓存列数与行值个数不一致（缓存已过期）。"""

    def __init__(self, expected: int, got: int, schema: str | None = None, table: str | None = None):
        where = f" for {schema}.{table}" if schema else ""
        super().__init__(f"Columns not matched{where}, expect {expected} got {got}")
        self.expected = expected
        self.got = got
        self.schema = schema
        self.table = table


class SchemaQueryFailed(BinlogClientError):
    """information_schema 查询失败（网络/权限等）；不缓存，下次事件重试。"""

    def __init__(self, schema: str, table: str, cause: BaseException):
        super().__init__(f"Schema query failed for {schema}.{table}: {cause!r}")
        self.schema = schema
        self.table = table
        self.cause = cause


class PublisherFailed(BinlogClientError):
    """下游消息总线投递失败。"""

    def __init__(self, address: str | None, cause: BaseException):
        super().__init__(f"Publishing to {address!r} failed: {cause!r}")
        self.address = address
        self.cause = cause


class ReplicationStreamError(BinlogClientError):
    """复制连接中断且未开启 keep_alive（或重连本身失败）。"""

    def __init__(self, cause: BaseException):
        super().__init__(f"Replication stream failed: {cause!r}")
        self.cause = cause
