# 记录分发 EventDispatcher

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from commons.base_logger import BaseLogger

from .errors import ConfigurationError, PublisherFailed
from .models import RowRecord, record_headers
from .protocols import Publisher

RecordHandler = Callable[[RowRecord], Union[None, Awaitable[None]]]
ExceptionHandler = Callable[[BaseException], Any]


class EventDispatcher:
    """
    负责把一条完成的记录扇出：
    - 本地 handler（同步调用；返回协程时 await 它）
    - 消息总线：publish（广播）或 send（点对点），二选一，都不选则不投递
    - handler / 总线 / 构造阶段的异常统一交给 exception_handler；
      未注册 exception_handler 时只记一条 warning，不向事件循环抛出
    """

    def __init__(
        self,
        *,
        publisher: Optional[Publisher] = None,
        message_address: Optional[str] = None,
        publish_message: bool = False,
        send_message: bool = False,
        logger: Optional[BaseLogger] = None,
    ):
        if publish_message and send_message:
            raise ConfigurationError("publish_message 与 send_message 不能同时开启")
        if (publish_message or send_message) and (publisher is None or not message_address):
            raise ConfigurationError("开启总线投递时必须提供 publisher 与 message_address")

        self.log = logger or BaseLogger(name="EventDispatcher")
        self._publisher = publisher
        self._address = message_address
        self._publish = publish_message
        self._send = send_message

        self._handler: Optional[RecordHandler] = None
        self._exception_handler: Optional[ExceptionHandler] = None

    # ──────────────────────────── 注册 ──────────────────────────── #

    def handler(self, handler: Optional[RecordHandler]) -> None:
        self._handler = handler

    def exception_handler(self, handler: Optional[ExceptionHandler]) -> None:
        self._exception_handler = handler

    @property
    def message_address(self) -> Optional[str]:
        return self._address

    # ──────────────────────────── 分发 ──────────────────────────── #

    async def dispatch(self, record: RowRecord) -> None:
        """投递一条记录；任何异常都转给 exception_handler，本方法不抛出。"""
        if self._handler is not None:
            try:
                result = self._handler(record)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.notify_exception(e)

        if self._publish or self._send:
            headers = record_headers(record)
            try:
                if self._publish:
                    self._publisher.publish(self._address, record, headers)
                else:
                    self._publisher.send(self._address, record, headers)
            except Exception as e:
                self.notify_exception(PublisherFailed(self._address, e))

    def notify_exception(self, error: BaseException) -> None:
        if self._exception_handler is None:
            self.log.log_warning(f"[Dropped] no exception handler registered: {error!r}")
            return
        try:
            self._exception_handler(error)
        except Exception:
            self.log.log_error(f"[ExceptionHandler] failed while handling {error!r}")
