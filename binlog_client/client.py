#     复制客户端主类 BinlogClient
from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable, Optional

from commons.base_logger import BaseLogger
from dao.column_dao import ColumnDao

from .correlator import EventCorrelator
from .dispatcher import EventDispatcher, ExceptionHandler, RecordHandler
from .errors import ReplicationStreamError
from .options import BinlogClientOptions
from .protocols import Publisher, SchemaQuery
from .reader import BinlogReader, StreamEnded
from .schema_resolver import SchemaResolver

EndHandler = Callable[[], Any]


class BinlogClient:
    """
    MySQL 复制客户端：
      - 读线程（BinlogReader）把解码后的事件投递到有界队列；
      - 事件循环上的单个消费协程逐条取出，交给 EventCorrelator，
        一条事件处理完（含列名查询）才取下一条，保证 TableMap → Rows 不被交错；
      - 记录经 EventDispatcher 扇出到本地 handler 和/或消息总线；
      - pause() 后消费协程停止取事件，队列填满后读线程阻塞，实现端到端背压。

    也可不启动读线程，直接 await consume(event) 喂入标准事件（测试 / 自带解码器时使用）。
    """

    def __init__(
        self,
        options: Optional[BinlogClientOptions] = None,
        *,
        publisher: Optional[Publisher] = None,
        schema_query: Optional[SchemaQuery] = None,
        reader_factory: Optional[Callable[[BinlogClientOptions], Any]] = None,
        logger: Optional[BaseLogger] = None,
    ):
        self.options = options or BinlogClientOptions()
        self.log = logger or BaseLogger(name="BinlogClient")

        # 列名查询默认走 information_schema（与复制连接同一账号）
        if schema_query is None:
            schema_query = ColumnDao.from_options(self.options)
        self.resolver = SchemaResolver(schema_query, max_workers=self.options.schema_pool_size)
        self.dispatcher = EventDispatcher(
            publisher=publisher,
            message_address=self.options.message_address,
            publish_message=self.options.publish_message,
            send_message=self.options.send_message,
        )
        self.correlator = EventCorrelator(self.resolver, self.dispatcher)

        self._reader_factory = reader_factory or BinlogReader
        self._reader: Any = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # 初始为运行态；pause() 清除
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._end_handler: Optional[EndHandler] = None
        self._ended = False
        self._stopped = False
        self._consumed = 0

    # ──────────────────────────── 读流接口 ──────────────────────────── #

    def message_address(self) -> str:
        return self.options.message_address

    def handler(self, handler: Optional[RecordHandler]) -> "BinlogClient":
        """本地记录处理器：fn(record)，可以是普通函数或协程函数。"""
        self.dispatcher.handler(handler)
        return self

    def exception_handler(self, handler: Optional[ExceptionHandler]) -> "BinlogClient":
        self.dispatcher.exception_handler(handler)
        return self

    def end_handler(self, handler: Optional[EndHandler]) -> "BinlogClient":
        self._end_handler = handler
        return self

    def pause(self) -> "BinlogClient":
        self._call_on_loop(self._resumed.clear)
        return self

    def resume(self) -> "BinlogClient":
        self._call_on_loop(self._resumed.set)
        return self

    @property
    def paused(self) -> bool:
        return not self._resumed.is_set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def consumed(self) -> int:
        """已处理的标准事件数"""
        return self._consumed

    @property
    def position(self) -> tuple[Optional[str], Optional[int]]:
        """最近一次读到的 binlog 位置（未启动读线程时为 (None, None)）"""
        if self._reader is None:
            return None, None
        return self._reader.position

    # ──────────────────────────── 生命周期 ──────────────────────────── #

    async def start(self) -> "BinlogClient":
        if self._task is not None:
            raise RuntimeError("BinlogClient 已启动")
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.options.event_queue_size)
        self._reader = self._reader_factory(self.options)
        self._reader.start(self._loop, self._queue)
        self._task = asyncio.create_task(self._pipeline(), name="binlog-pipeline")
        self.log.log_info(f"[Start] address={self.message_address()}")
        return self

    async def stop(self) -> None:
        """
        停止：关闭读线程、取消消费协程、丢弃在途列名查询（不上报异常），最后触发 end_handler。幂等。
        """
        if self._stopped:
            return
        self._stopped = True
        if self._reader is not None:
            await self._reader.stop()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self.resolver.close()
        self._fire_end()
        self.log.log_info(f"[Stop] consumed={self._consumed} position={self.position}")

    async def consume(self, event: Any) -> None:
        """处理一条标准事件；任何异常都转给 exception_handler。"""
        try:
            await self.correlator.consume(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.log_error(f"[Pipeline] unexpected error on {type(event).__name__}: {e!r}")
            self.dispatcher.notify_exception(e)
        self._consumed += 1

    # ──────────────────────────── 内部 ──────────────────────────── #

    async def _pipeline(self) -> None:
        while True:
            await self._resumed.wait()
            item = await self._queue.get()
            try:
                if isinstance(item, StreamEnded):
                    if item.error is not None:
                        self.dispatcher.notify_exception(ReplicationStreamError(item.error))
                    self.log.log_info("[Pipeline] replication stream ended")
                    self._fire_end()
                    return
                await self.consume(item)
            finally:
                self._queue.task_done()

    def _fire_end(self) -> None:
        if self._ended:
            return
        self._ended = True
        if self._end_handler is not None:
            try:
                self._end_handler()
            except Exception:
                self.log.log_error("[EndHandler] failed")

    def _call_on_loop(self, fn: Callable[[], Any]) -> None:
        """pause/resume 可能来自其它线程（例如 drain 回调），统一切回事件循环线程执行。"""
        loop = self._loop
        if loop is None or loop.is_closed() or _on_loop_thread(loop):
            fn()
        else:
            loop.call_soon_threadsafe(fn)


def _on_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False
