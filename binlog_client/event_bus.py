# binlog_client/event_bus.py
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Awaitable, Callable, Dict, List, Union

from commons.base_logger import BaseLogger

from .models import Headers, RowRecord


@dataclass(frozen=True)
class Message:
    address: str
    body: RowRecord
    headers: Headers = field(default_factory=dict)


Consumer = Callable[[Message], Union[None, Awaitable[None]]]


class LocalEventBus:
    """
    进程内消息总线（Publisher 实现）：
      - consumer(address, fn) 注册订阅者，返回取消订阅函数；
      - publish() 投递给该地址的所有订阅者；
      - send() 轮询投递给其中一个订阅者，无订阅者时丢弃；
      - 异步订阅者在当前运行的事件循环上调度，不阻塞发布方。
    """

    def __init__(self, logger: BaseLogger | None = None) -> None:
        self.log = logger or BaseLogger(name="LocalEventBus")
        self._consumers: Dict[str, List[Consumer]] = {}
        self._rr: Dict[str, count] = {}
        self._pending: set[asyncio.Task] = set()

    def consumer(self, address: str, fn: Consumer) -> Callable[[], None]:
        self._consumers.setdefault(address, []).append(fn)

        def unregister() -> None:
            fns = self._consumers.get(address, [])
            if fn in fns:
                fns.remove(fn)

        return unregister

    def consumers(self, address: str) -> List[Consumer]:
        return list(self._consumers.get(address, []))

    def publish(self, address: str, body: RowRecord, headers: Headers) -> None:
        msg = Message(address, body, dict(headers))
        for fn in self.consumers(address):
            self._deliver(fn, msg)

    def send(self, address: str, body: RowRecord, headers: Headers) -> None:
        fns = self.consumers(address)
        if not fns:
            self.log.log_debug(f"[Send] no consumer at {address}, dropped")
            return
        idx = next(self._rr.setdefault(address, count())) % len(fns)
        self._deliver(fns[idx], Message(address, body, dict(headers)))

    def _deliver(self, fn: Consumer, msg: Message) -> None:
        result: Any = fn(msg)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.log.log_error(f"[Consumer] failed: {task.exception()!r}", exc_info=False)

    async def drain(self) -> None:
        """等待已调度的异步订阅者全部完成（测试 / 退出时使用）。"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
