# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：客户端运行配置（YAML / dict / 环境变量 → 不可变 dataclass）
# 说明：
#   - 时间类配置统一为毫秒，转换到底层库单位的逻辑集中在这里；
#   - 既接受 snake_case 也接受 camelCase 键（connectTimeout / publishMessage ...）；
#   - publish_message 与 send_message 互斥，同时开启在构造时即报 ConfigurationError。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import dataclasses
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from commons.base_dataclasses import BaseDataClass
from tools.config_loader import load_config

from .errors import ConfigurationError

ENV_PREFIX = "BINLOG_"
BINLOG_FILE_START = 4


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "y", "on"):
        return True
    if text in ("0", "false", "no", "n", "off", ""):
        return False
    raise ValueError(f"无法解析为布尔值: {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"不接受布尔值作为整数: {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value).strip())


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _default_address() -> str:
    return f"binlog_client.{uuid.uuid4()}"


def _check_exclusive_delivery(row: Dict[str, Any]) -> None:
    if row["publish_message"] and row["send_message"]:
        raise ConfigurationError("publish_message 与 send_message 不能同时开启")


def _check_ranges(row: Dict[str, Any]) -> None:
    if not 0 < row["port"] < 65536:
        raise ConfigurationError(f"port 超出范围: {row['port']}")
    if row["connect_timeout"] <= 0:
        raise ConfigurationError("connect_timeout 必须 > 0（毫秒）")
    if row["position"] < -1:
        raise ConfigurationError("position 只能是 -1（当前位置）或非负偏移")
    if row["position"] >= 0 and not row["filename"]:
        raise ConfigurationError("指定 position 时必须同时指定 filename")
    if row["keep_alive_interval"] <= 0:
        raise ConfigurationError("keep_alive_interval 必须 > 0（毫秒）")
    if row["heartbeat_interval"] < 0:
        raise ConfigurationError("heartbeat_interval 不能为负（0 表示关闭）")
    if row["event_queue_size"] < 1:
        raise ConfigurationError("event_queue_size 必须 >= 1")
    if not 1 <= row["schema_pool_size"] <= 32:
        raise ConfigurationError("schema_pool_size 必须在 [1, 32] 之间")


@dataclass(frozen=True)
class BinlogClientOptions(BaseDataClass):
    """复制客户端配置（不可变）。时间单位均为毫秒。"""

    host: str = "localhost"
    port: int = 3306
    username: str = "root"
    password: Optional[str] = None
    connect_timeout: int = 30_000
    filename: Optional[str] = None               # 起始 binlog 文件
    position: int = -1                           # -1 表示从服务端当前位置开始
    keep_alive: bool = True                      # 断线自动重连
    keep_alive_interval: int = 60_000            # 重连等待
    heartbeat_interval: int = 0                  # 0 = 不请求心跳
    publish_message: bool = False                # 广播到总线
    send_message: bool = False                   # 点对点发送到总线
    message_address: str = field(default_factory=_default_address)
    server_id: int = 65535                       # 作为从库注册的 server-id
    event_queue_size: int = 1024                 # 读线程 → 事件循环的有界队列
    schema_pool_size: int = 2                    # information_schema 连接池大小

    FIELD_MAPPING = {
        "user": "username",
        "connectTimeout": "connect_timeout",
        "keepAlive": "keep_alive",
        "keepAliveInterval": "keep_alive_interval",
        "heartbeatInterval": "heartbeat_interval",
        "publishMessage": "publish_message",
        "sendMessage": "send_message",
        "messageAddress": "message_address",
        "serverId": "server_id",
        "eventQueueSize": "event_queue_size",
        "schemaPoolSize": "schema_pool_size",
    }
    CONVERTERS = {
        "host": str,
        "port": _to_int,
        "username": str,
        "password": _to_optional_str,
        "connect_timeout": _to_int,
        "filename": _to_optional_str,
        "position": _to_int,
        "keep_alive": _to_bool,
        "keep_alive_interval": _to_int,
        "heartbeat_interval": _to_int,
        "publish_message": _to_bool,
        "send_message": _to_bool,
        "message_address": _to_optional_str,
        "server_id": _to_int,
        "event_queue_size": _to_int,
        "schema_pool_size": _to_int,
    }
    VALIDATORS = [_check_exclusive_delivery, _check_ranges]

    def __post_init__(self):
        if not self.message_address:
            object.__setattr__(self, "message_address", _default_address())
        self.validate()

    # ──────────────────────────── 构造入口 ──────────────────────────── #

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, strict: bool = True) -> "BinlogClientOptions":
        try:
            return super().from_dict(data, strict=strict)
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"配置解析失败: {e}") from e

    @classmethod
    def env_overrides(cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """收集 BINLOG_HOST / BINLOG_PORT / ... 形式的环境变量（键为字段名）。"""
        environ = os.environ if environ is None else environ
        found: Dict[str, str] = {}
        for name in cls.field_names():
            key = prefix + name.upper()
            if key in environ:
                found[name] = environ[key]
        return found

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> "BinlogClientOptions":
        return cls.from_dict(cls.env_overrides(prefix, environ))

    @classmethod
    def from_yaml(
        cls,
        section: str = "binlog",
        file_path: str = os.path.join("config", "binlog.yaml"),
        *,
        use_env: bool = True,
    ) -> "BinlogClientOptions":
        """读取 YAML 配置块；use_env=True 时环境变量覆盖文件中的同名项。"""
        data = dict(load_config(section, file_path))
        if use_env:
            for name, value in cls.env_overrides().items():
                # 环境变量优先：先去掉文件里映射到同一字段的 camelCase 键
                for ext_key in [k for k, v in cls.FIELD_MAPPING.items() if v == name]:
                    data.pop(ext_key, None)
                data[name] = value
        return cls.from_dict(data)

    def with_overrides(self, **changes: Any) -> "BinlogClientOptions":
        return dataclasses.replace(self, **changes)

    # ──────────────────────────── 底层库参数 ──────────────────────────── #

    @property
    def resume_from_current(self) -> bool:
        return self.filename is None

    def connection_settings(self) -> Dict[str, Any]:
        """pymysql 连接参数（复制连接与 ctl 连接共用）"""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "password": self.password or "",
            "connect_timeout": max(1, self.connect_timeout // 1000),
        }

    def stream_kwargs(self, log_file: Optional[str] = None, log_pos: Optional[int] = None) -> Dict[str, Any]:
        """
        BinLogStreamReader 的构造参数。
        log_file / log_pos 给定时（断线重连）优先于配置里的起始位置。
        """
        kwargs: Dict[str, Any] = {
            "connection_settings": self.connection_settings(),
            "server_id": self.server_id,
            "blocking": True,
            "resume_stream": True,
        }
        if log_file and log_pos is not None:
            kwargs["log_file"] = log_file
            kwargs["log_pos"] = log_pos
        elif not self.resume_from_current:
            # 只给文件名时从文件头（magic 之后）开始
            kwargs["log_file"] = self.filename
            kwargs["log_pos"] = self.position if self.position >= 0 else BINLOG_FILE_START
        if self.heartbeat_interval > 0:
            kwargs["slave_heartbeat"] = self.heartbeat_interval / 1000.0
        return kwargs
