# main.py
"""
=========================================
主程序入口
=========================================

功能说明：
  - 读取 config/binlog.yaml 的 binlog 配置块（BINLOG_* 环境变量可覆盖）
  - 以从库身份连接 MySQL，逐条输出行变更记录（每行一条 JSON）
  - 异常统一写 ERROR 日志，不中断复制流
  - 支持 Ctrl+C / SIGTERM 优雅退出

用法：
  python -m binlog_client.main [config_path]
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import sys

from commons.base_logger import BaseLogger

from .client import BinlogClient
from .event_bus import LocalEventBus, Message
from .models import RowRecord, record_to_json
from .options import BinlogClientOptions

DEFAULT_CONFIG = os.path.join("config", "binlog.yaml")


def print_handler(record: RowRecord) -> None:
    """输出一条记录（JSON Lines）"""
    print(record_to_json(record), flush=True)


def build_client(options: BinlogClientOptions) -> BinlogClient:
    """
    publishMessage / sendMessage 开启时记录经进程内总线投递，由总线上的订阅者输出；
    否则直接由本地 handler 输出。
    """
    if not (options.publish_message or options.send_message):
        return BinlogClient(options).handler(print_handler)

    bus = LocalEventBus()

    def print_message(msg: Message) -> None:
        print_handler(msg.body)

    bus.consumer(options.message_address, print_message)
    return BinlogClient(options, publisher=bus)


async def main(config_path: str = DEFAULT_CONFIG) -> None:
    log = BaseLogger(name="binlog_main", to_file=True)
    options = BinlogClientOptions.from_yaml("binlog", config_path)

    stop_evt = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _stop(*_):
        stop_evt.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):  # Windows 下可能不支持
            loop.add_signal_handler(sig, _stop)

    client = build_client(options)
    client.exception_handler(lambda e: log.log_error(f"[Record] {e!r}", exc_info=False))
    # 复制流结束（keep_alive 关闭时断线）也退出
    client.end_handler(stop_evt.set)

    await client.start()
    try:
        await stop_evt.wait()
    finally:
        await client.stop()
        log.log_info(f"[Bye] last position={client.position}")


def run() -> None:
    """同步入口点（console script）"""
    try:
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
