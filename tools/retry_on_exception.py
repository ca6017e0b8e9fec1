import functools
import time

import mysql.connector

from commons.base_logger import BaseLogger

_log = BaseLogger(name="retry")


def retry_on_exception(retries=3, delay=1.0, exceptions=(mysql.connector.Error,)):
    """
    通用重试装饰器：遇到指定异常时，自动重试（同步函数，阻塞当前线程）
    只应装饰运行在工作线程中的函数，不要用在事件循环线程上。
    :param retries: 最大尝试次数（含第一次）
    :param delay: 每次重试间隔（秒）
    :param exceptions: 哪些异常触发重试；最后一次失败原样抛出
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == retries:
                        raise
                    _log.log_warning(f"[Retry {attempt}/{retries}] {func.__name__} failed: {e}")
                    time.sleep(delay)
        return wrapper
    return decorator
