# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：列名缓存 (database, table) -> 有序列名
# 设计要点：
#   - 只在事件循环线程上读写缓存；阻塞查询放到专属线程池执行；
#   - single-flight：同一个 key 同时最多一个查询在途，并发调用者共享结果；
#   - 失效代数（generation）：DDL 触发 invalidate_all() 后代数 +1，
#     旧代数的在途查询结果仍返回给它的等待者，但不会写入缓存；
#   - 表不存在（空结果）与查询失败都不缓存，下一次调用重新查询。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Dict, Optional, Tuple

from commons.base_logger import BaseLogger

from .errors import SchemaQueryFailed
from .protocols import SchemaQuery

Key = Tuple[str, str]
Columns = Tuple[str, ...]


class SchemaResolver:
    """
    对外接口：
      - await columns(database, table) -> 列名元组 | None（表不存在）
      - invalidate_all()                # DDL 后整体失效
      - invalidate(database, table)     # 单表失效（列数不匹配时使用）
      - close()                         # 丢弃在途查询并释放线程池（幂等）
    """

    def __init__(
        self,
        query: SchemaQuery,
        *,
        executor: Optional[concurrent.futures.Executor] = None,
        max_workers: int = 2,
        logger: Optional[BaseLogger] = None,
    ):
        self._query = query
        self.log = logger or BaseLogger(name="SchemaResolver")

        # 未传入执行器时自建线程池（大小与 ColumnDao 连接池一致），close() 时负责关闭
        self._own_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="binlog-schema"
        )

        self._cache: Dict[Key, Columns] = {}
        self._inflight: Dict[Key, asyncio.Future] = {}
        self._generation = 0
        self._closed = False

    # ──────────────────────────── 查询 ──────────────────────────── #

    @property
    def generation(self) -> int:
        return self._generation

    def cached(self, database: str, table: str) -> Optional[Columns]:
        """只查缓存，不触发查询。"""
        return self._cache.get((database, table))

    def prime(self, database: str, table: str, columns) -> None:
        """直接写入一条完整缓存（预热 / 测试用）。"""
        self._cache[(database, table)] = tuple(columns)

    async def columns(self, database: str, table: str) -> Optional[Columns]:
        if self._closed:
            raise RuntimeError("SchemaResolver 已关闭")

        key = (database, table)
        hit = self._cache.get(key)
        if hit is not None:
            return hit

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(key, self._generation))
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task
        else:
            self.log.log_debug(f"[Coalesce] {database}.{table} joins in-flight query")

        # shield：单个等待者被取消不影响其它共享同一查询的调用者
        return await asyncio.shield(task)

    async def _fetch(self, key: Key, generation: int) -> Optional[Columns]:
        database, table = key
        loop = asyncio.get_running_loop()
        try:
            names = await loop.run_in_executor(self._executor, self._query, database, table)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.log_warning(f"[Query] {database}.{table} failed: {e!r}")
            raise SchemaQueryFailed(database, table, e) from e
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

        if not names:
            self.log.log_info(f"[Query] {database}.{table} not found in information_schema")
            return None

        columns = tuple(names)
        if generation == self._generation:
            self._cache[key] = columns
            self.log.log_debug(f"[Query] {database}.{table} cached {len(columns)} columns (gen={generation})")
        else:
            self.log.log_info(
                f"[Query] {database}.{table} result from stale generation {generation} "
                f"(current {self._generation}), not cached"
            )
        return columns

    # ──────────────────────────── 失效 ──────────────────────────── #

    def invalidate_all(self) -> None:
        """清空全部缓存；在途查询不再写缓存，新调用会重新发起查询。"""
        self._generation += 1
        dropped = len(self._cache)
        self._cache.clear()
        self._inflight.clear()
        self.log.log_info(f"[Invalidate] cleared {dropped} tables, generation={self._generation}")

    def invalidate(self, database: str, table: str) -> None:
        if self._cache.pop((database, table), None) is not None:
            self.log.log_info(f"[Invalidate] {database}.{table}")

    # ──────────────────────────── 关闭 ──────────────────────────── #

    def close(self) -> None:
        """取消在途查询（不上报异常），关闭自建线程池。幂等。"""
        if self._closed:
            return
        self._closed = True
        for task in list(self._inflight.values()):
            task.cancel()
        self._inflight.clear()
        if self._own_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)


def _retrieve_exception(task: asyncio.Future) -> None:
    # 所有等待者都被取消时，避免 "exception was never retrieved" 告警
    if not task.cancelled():
        task.exception()
