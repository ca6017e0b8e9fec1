# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：记录流的背压适配
#   - WriteQueue：线程安全的有界写目标（生产者在事件循环，消费者可在任意线程）；
#   - Pump：把可暂停的读流（BinlogClient）接到写目标上：满了暂停，排空后恢复。
# 设计要点：
#   - 半水位：size > max_size / 2 视为满，生产者在真正填满前就开始节流；
#   - drain 回调在锁外调用，避免回调里再次 write/poll 造成重入死锁；
#   - 每次 满 -> 不满 的转换只触发一次 drain 回调（回调触发后即被清除）。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import asyncio
import threading
from collections import deque
from typing import Any, Callable, Deque, Optional

from commons.base_logger import BaseLogger

from .protocols import ReadStream, WriteStream

DEFAULT_MAX_SIZE = 16

DrainHandler = Callable[[], None]


class WriteQueue:
    """
    对外接口：
      - write(item)                 # 生产者写入（不阻塞，超过半水位时 write_queue_full() 为 True）
      - write_queue_full()
      - set_write_queue_max_size(n)
      - drain_handler(fn)           # 满后回落到半水位以下时调用一次
      - poll() / poll_all()         # 消费者取出
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("max_size 必须 >= 1")
        self._lock = threading.Lock()
        self._items: Deque[Any] = deque()
        self._max_size = max_size
        self._drain_handler: Optional[DrainHandler] = None
        self._was_full = False        # 出现过 满 状态、尚未被 drain 回调消费

    # ──────────────────────────── 生产者侧 ──────────────────────────── #

    def write(self, item: Any) -> "WriteQueue":
        with self._lock:
            self._items.append(item)
            if self._is_full_locked():
                self._was_full = True
        return self

    def write_queue_full(self) -> bool:
        with self._lock:
            return self._is_full_locked()

    def set_write_queue_max_size(self, max_size: int) -> "WriteQueue":
        """调大上限可能让队列直接回落到不满，此时同样触发 drain 回调。"""
        if max_size < 1:
            raise ValueError("max_size 必须 >= 1")
        with self._lock:
            self._max_size = max_size
            fire = self._take_drain_locked()
        if fire is not None:
            fire()
        return self

    def drain_handler(self, handler: Optional[DrainHandler]) -> "WriteQueue":
        """
        注册 drain 回调。若注册时队列已经从满回落（消费者线程抢先排空），立即调用，
        避免 Pump 在 "判断已满 → 注册回调" 之间错过转换而永久暂停。
        """
        fire: Optional[DrainHandler] = None
        with self._lock:
            if handler is not None and self._was_full and not self._is_full_locked():
                self._was_full = False
                fire = handler
            else:
                self._drain_handler = handler
        if fire is not None:
            fire()
        return self

    # ──────────────────────────── 消费者侧 ──────────────────────────── #

    def poll(self) -> Any:
        """取出最早的一条；队列为空返回 None。"""
        fire: Optional[DrainHandler] = None
        with self._lock:
            item = self._items.popleft() if self._items else None
            fire = self._take_drain_locked()
        if fire is not None:
            fire()
        return item

    def poll_all(self) -> list:
        fire: Optional[DrainHandler] = None
        with self._lock:
            items = list(self._items)
            self._items.clear()
            fire = self._take_drain_locked()
        if fire is not None:
            fire()
        return items

    # ──────────────────────────── 观测 ──────────────────────────── #

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    # ──────────────────────────── 内部（需持锁） ──────────────────────────── #

    def _is_full_locked(self) -> bool:
        return len(self._items) > self._max_size / 2

    def _take_drain_locked(self) -> Optional[DrainHandler]:
        if self._was_full and self._drain_handler is not None and not self._is_full_locked():
            handler, self._drain_handler = self._drain_handler, None
            self._was_full = False
            return handler
        return None


class Pump:
    """
    读流 → 写目标：
      - 每条记录 write 到写目标；
      - 写目标满时暂停读流，并注册 drain 回调；
      - drain 回调可能在消费者线程触发，resume 通过 call_soon_threadsafe 回到事件循环。
    """

    def __init__(self, read_stream: ReadStream, write_stream: WriteStream,
                 write_queue_max_size: Optional[int] = None,
                 logger: Optional[BaseLogger] = None):
        self._rs = read_stream
        self._ws = write_stream
        if write_queue_max_size is not None:
            self._ws.set_write_queue_max_size(write_queue_max_size)
        self.log = logger or BaseLogger(name="Pump")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pumped = 0
        self._paused_times = 0

    @property
    def pumped(self) -> int:
        return self._pumped

    @property
    def paused_times(self) -> int:
        return self._paused_times

    def start(self) -> "Pump":
        """须在事件循环线程调用（绑定 resume 的目标循环）。"""
        self._loop = asyncio.get_running_loop()
        self._rs.handler(self._on_record)
        return self

    def stop(self) -> "Pump":
        self._rs.handler(None)
        self._ws.drain_handler(None)
        self._rs.resume()
        return self

    def _on_record(self, record: Any) -> None:
        self._ws.write(record)
        self._pumped += 1
        if self._ws.write_queue_full():
            self._paused_times += 1
            self._rs.pause()
            self._ws.drain_handler(self._on_drain)

    def _on_drain(self) -> None:
        self.log.log_debug("[Drain] write target accepts again, resume")
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._rs.resume)
