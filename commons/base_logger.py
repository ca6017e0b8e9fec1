import logging
import os
from logging.handlers import TimedRotatingFileHandler

# 统一的日志格式：时间 | logger | 级别 | [文件:行 函数] | 线程 | 消息
LOG_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)s | "
    "[%(filename)s:%(lineno)d %(funcName)s] | %(threadName)s | %(message)s"
)

# 入口程序可通过环境变量统一打开文件日志 / 调整级别
_ENV_TO_FILE = "BINLOG_LOG_TO_FILE"
_ENV_LEVEL = "BINLOG_LOG_LEVEL"


class BaseLogger:
    """
    组件日志封装：
    - 每个组件一个命名 logger（SchemaResolver / EventDispatcher / BinlogReader ...）
    - 控制台输出 + 可选的按天轮转文件
    - 同名 logger 只配置一次 handler，重复构造不会重复输出
    """

    def __init__(
        self,
        name: str,
        level: int | None = None,
        to_file: bool | None = None,
        file_path: str | None = None,
        file_level: int = logging.WARNING,
    ):
        """
        :param name: logger 名称（一般用组件类名）
        :param level: 控制台级别；默认读 BINLOG_LOG_LEVEL，缺省 INFO
        :param to_file: 是否写文件；默认读 BINLOG_LOG_TO_FILE，缺省关闭
        :param file_path: 日志文件路径，缺省 logs/<name>.log
        :param file_level: 文件日志最低级别（默认 WARNING）
        """
        if level is None:
            level = logging.getLevelName(os.getenv(_ENV_LEVEL, "INFO").upper())
            if not isinstance(level, int):
                level = logging.INFO
        if to_file is None:
            to_file = os.getenv(_ENV_TO_FILE, "false").lower() == "true"

        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.propagate = False

        if not self.logger.handlers:
            formatter = logging.Formatter(LOG_FORMAT)

            ch = logging.StreamHandler()
            ch.setLevel(level)
            ch.setFormatter(formatter)
            self.logger.addHandler(ch)

            if to_file:
                if file_path is None:
                    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
                    log_dir = os.path.join(project_root, "logs")
                    os.makedirs(log_dir, exist_ok=True)
                    file_path = os.path.join(log_dir, f"{name}.log")

                fh = TimedRotatingFileHandler(
                    filename=file_path,
                    when="midnight",
                    interval=1,
                    backupCount=7,
                    encoding="utf-8",
                )
                fh.setLevel(file_level)
                fh.setFormatter(formatter)
                self.logger.addHandler(fh)

    @property
    def name(self) -> str:
        return self.logger.name

    def is_debug(self) -> bool:
        """热点路径上拼接 debug 消息前先判断，避免无用的字符串格式化"""
        return self.logger.isEnabledFor(logging.DEBUG)

    # ------------------ 对外日志接口 ------------------

    def log_info(self, message: str, exc_info: bool = False):
        self.logger.info(message, exc_info=exc_info, stacklevel=2)

    def log_warning(self, message: str, exc_info: bool = False):
        self.logger.warning(message, exc_info=exc_info, stacklevel=2)

    def log_error(self, message: str, exc_info: bool = True):
        """记录 ERROR 日志（默认包含异常堆栈）"""
        self.logger.error(message, exc_info=exc_info, stacklevel=2)

    def log_debug(self, message: str, exc_info: bool = False):
        self.logger.debug(message, exc_info=exc_info, stacklevel=2)
