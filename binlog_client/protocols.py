# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：声明外部协作者的接口（协议），用于静态检查与解耦实现。
# 说明：
#   - SchemaQuery：information_schema 查询（ColumnDao 即为默认实现）；
#   - Publisher：消息总线（LocalEventBus 为进程内实现，可替换为 Kafka/Redis 等）；
#   - WriteStream：可背压的写目标（WriteQueue 为线程安全实现，Pump 只依赖本协议）。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

from .models import Headers, RowRecord


class SchemaQuery(Protocol):
    """阻塞查询：返回按 ordinal position 排序的列名；表不存在返回空序列。"""
    def __call__(self, database: str, table: str) -> Sequence[str]: ...


class Publisher(Protocol):
    """publish = 广播给所有订阅者；send = 点对点，至多一个接收者。"""
    def publish(self, address: str, body: RowRecord, headers: Headers) -> None: ...
    def send(self, address: str, body: RowRecord, headers: Headers) -> None: ...


class WriteStream(Protocol):
    def write(self, item: Any) -> Any: ...
    def write_queue_full(self) -> bool: ...
    def set_write_queue_max_size(self, max_size: int) -> Any: ...
    def drain_handler(self, handler: Optional[Callable[[], None]]) -> Any: ...


class ReadStream(Protocol):
    def handler(self, handler: Optional[Callable[[RowRecord], Any]]) -> Any: ...
    def pause(self) -> Any: ...
    def resume(self) -> Any: ...
