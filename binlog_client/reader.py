# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：复制连接读线程 BinlogReader
# 设计要点：
#   - BinLogStreamReader 是阻塞迭代器，固定跑在一个专属单线程执行器里，不占用事件循环；
#   - 解码后的事件经 run_coroutine_threadsafe 投递到事件循环的有界队列，
#     队列满时读线程阻塞，背压一路传到服务端；
#   - keep_alive：连接断开后等待 keep_alive_interval 毫秒，从最后记录的 (log_file, log_pos) 重连；
#   - 线程退出时总会投递一个 StreamEnded（带错误或不带），事件循环据此收尾。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pymysqlreplication import BinLogStreamReader

from commons.base_logger import BaseLogger

from .event_factory import EventFactory
from .options import BinlogClientOptions

# 投递被阻塞时，每隔这么久检查一次是否在停止
POST_POLL_SECONDS = 0.2


@dataclass(frozen=True)
class StreamEnded:
    """读线程结束标记；error 为 None 表示正常结束（停止或流关闭）。"""
    error: Optional[BaseException] = None


class BinlogReader:
    """
    对外接口：
      - start(loop, queue)   # 启动读线程，事件写入 queue
      - await stop()         # 关闭连接并等待读线程退出（幂等）
      - position             # 最近一次记录的 (log_file, log_pos)
    """

    def __init__(
        self,
        options: BinlogClientOptions,
        *,
        stream_factory: Callable[..., Any] = BinLogStreamReader,
        factory: Optional[EventFactory] = None,
        logger: Optional[BaseLogger] = None,
    ):
        self.options = options
        self.log = logger or BaseLogger(name="BinlogReader")
        self._stream_factory = stream_factory
        self._factory = factory or EventFactory()

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="binlog-reader"
        )
        self._stopping = threading.Event()
        self._stream_lock = threading.Lock()
        self._stream: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._future: Optional[asyncio.Future] = None

        self._log_file: Optional[str] = None
        self._log_pos: Optional[int] = None
        self._reconnects = 0

    @property
    def position(self) -> tuple[Optional[str], Optional[int]]:
        return self._log_file, self._log_pos

    @property
    def reconnects(self) -> int:
        return self._reconnects

    # ──────────────────────────── 生命周期 ──────────────────────────── #

    def start(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> asyncio.Future:
        if self._future is not None:
            raise RuntimeError("BinlogReader 已启动")
        self._loop = loop
        self._queue = queue
        self._future = loop.run_in_executor(self._executor, self._run)
        self.log.log_info(
            f"[Start] {self.options.host}:{self.options.port} server_id={self.options.server_id} "
            f"from={'current' if self.options.resume_from_current else (self.options.filename, self.options.position)}"
        )
        return self._future

    async def stop(self, timeout: float = 5.0) -> None:
        if self._stopping.is_set():
            return
        self._stopping.set()
        self._close_stream()
        if self._future is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._future), timeout)
            except asyncio.TimeoutError:
                self.log.log_warning(f"[Stop] reader thread still busy after {timeout}s, abandoned")
            except Exception as e:
                self.log.log_warning(f"[Stop] reader thread finished with {e!r}")
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.log.log_info(f"[Stop] stopped at {self.position}")

    def _close_stream(self) -> None:
        with self._stream_lock:
            stream = self._stream
        if stream is not None:
            _close_quietly(stream, self.log)

    # ──────────────────────────── 读线程 ──────────────────────────── #

    def _run(self) -> None:
        error: Optional[BaseException] = None
        try:
            while not self._stopping.is_set():
                stream = self._stream_factory(**self.options.stream_kwargs(self._log_file, self._log_pos))
                with self._stream_lock:
                    self._stream = stream
                try:
                    for raw in stream:
                        self._track_position(stream)
                        event = self._factory.from_binlog(raw)
                        if event is not None and not self._post(event):
                            return
                        if self._stopping.is_set():
                            return
                    # 迭代正常结束：流被关闭或非阻塞模式读完
                    return
                except Exception as e:
                    if self._stopping.is_set():
                        return
                    if not self.options.keep_alive:
                        self.log.log_error(f"[Stream] connection lost, keep_alive off: {e!r}")
                        error = e
                        return
                    self._reconnects += 1
                    self.log.log_warning(
                        f"[Reconnect] connection lost ({e!r}), retry #{self._reconnects} in "
                        f"{self.options.keep_alive_interval}ms from {self.position}"
                    )
                    if self._stopping.wait(self.options.keep_alive_interval / 1000.0):
                        return
                finally:
                    with self._stream_lock:
                        self._stream = None
                    _close_quietly(stream, self.log)
        except Exception as e:
            # 构造 BinLogStreamReader 本身失败等
            self.log.log_error(f"[Stream] reader thread failed: {e!r}")
            error = e
        finally:
            self._post(StreamEnded(error))

    def _track_position(self, stream: Any) -> None:
        log_file = getattr(stream, "log_file", None)
        log_pos = getattr(stream, "log_pos", None)
        if log_file:
            self._log_file = log_file
        if log_pos is not None:
            self._log_pos = log_pos

    def _post(self, item: Any) -> bool:
        """投递到事件循环；队列满时阻塞本线程。停止中或循环已关闭返回 False。"""
        try:
            fut = asyncio.run_coroutine_threadsafe(self._queue.put(item), self._loop)
        except RuntimeError:
            return False
        while True:
            try:
                fut.result(timeout=POST_POLL_SECONDS)
                return True
            except concurrent.futures.TimeoutError:
                if self._stopping.is_set():
                    fut.cancel()
                    return False
            except concurrent.futures.CancelledError:
                return False


def _close_quietly(stream: Any, log: BaseLogger) -> None:
    try:
        stream.close()
    except Exception as e:
        log.log_debug(f"[Close] ignore error while closing stream: {e!r}")
