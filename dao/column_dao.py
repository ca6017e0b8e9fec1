# -*- coding: utf-8 -*-
"""
ColumnDao
---------
information_schema 列名查询：(database, table) -> 按 ORDINAL_POSITION 排序的列名列表。

说明：
- 方法是阻塞的，由 SchemaResolver 放到工作线程执行；
- 表不存在时返回空列表，是否缓存由上层决定；
- 连接类异常重试两次后原样抛出（mysql.connector.Error）。
"""
from __future__ import annotations

from typing import List

from commons.base_db import BaseDB
from commons.base_logger import BaseLogger
from tools.retry_on_exception import retry_on_exception


class ColumnDao(BaseDB):
    """按表查询列名的 DAO，实例可直接当作 SchemaQuery 调用。"""

    COLUMNS_SQL = (
        "SELECT COLUMN_NAME FROM information_schema.COLUMNS "
        "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s "
        "ORDER BY ORDINAL_POSITION"
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("logger", BaseLogger(name="ColumnDao"))
        super().__init__(**kwargs)

    @classmethod
    def from_options(cls, options) -> "ColumnDao":
        """用 BinlogClientOptions 的连接参数构造（与复制连接同一账号）。"""
        return cls(
            host=options.host,
            port=options.port,
            user=options.username,
            password=options.password,
            pool_size=options.schema_pool_size,
            connect_timeout=options.connect_timeout / 1000.0,
        )

    @retry_on_exception(retries=2, delay=0.2)
    def query_column_names(self, database: str, table: str) -> List[str]:
        """
        查询列名；表不存在时返回 []。
        """
        with self.connection_ctx() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(self.COLUMNS_SQL, (database, table))
                rows = cursor.fetchall()
            finally:
                cursor.close()
        names = [row[0].decode() if isinstance(row[0], (bytes, bytearray)) else row[0] for row in rows]
        self.logger.log_debug(f"[Columns] {database}.{table} -> {names}")
        return names

    def __call__(self, database: str, table: str) -> List[str]:
        return self.query_column_names(database, table)
