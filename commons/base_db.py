from contextlib import contextmanager

import mysql.connector
from mysql.connector import pooling, Error

from commons.base_logger import BaseLogger


class BaseDB:
    """
    数据库连接基类，提供连接池支持、日志记录、连接管理和上下文管理功能
    - 连接池懒加载：第一次取连接时才建池，构造本身不触发网络 IO
    - 建池失败退回到普通连接模式
    - 本类方法都是阻塞的，调用方需放到工作线程里执行
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 3306,
        user: str = "root",
        password: str | None = None,
        database: str | None = None,
        pool_size: int = 2,
        pool_name: str = "binlog_schema",
        connect_timeout: float = 30.0,
        logger: BaseLogger | None = None,
    ):
        self.logger = logger or BaseLogger(name="DB")

        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.pool_size = pool_size
        self.pool_name = pool_name
        self.connect_timeout = connect_timeout

        self.connection_pool = None     # 连接池对象
        self.use_pool = True            # 是否启用连接池
        self._pool_attempted = False    # 只尝试建池一次

    def _connect_kwargs(self) -> dict:
        kwargs = dict(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password or "",
            connection_timeout=int(max(1, self.connect_timeout)),
        )
        if self.database:
            kwargs["database"] = self.database
        return kwargs

    def _initialize_connection_pool(self):
        """
        尝试创建连接池，失败则退回到普通连接模式
        """
        self._pool_attempted = True
        try:
            self.connection_pool = pooling.MySQLConnectionPool(
                pool_name=self.pool_name,
                pool_size=self.pool_size,
                **self._connect_kwargs(),
            )
            self.logger.log_info(f'[Pool] created {self.pool_name} size={self.pool_size} -> {self.host}:{self.port}')
            self.use_pool = True
        except Error as e:
            self.logger.log_warning(f'[Pool] 连接池创建失败，降级为普通连接: {e}')
            self.use_pool = False
            self.connection_pool = None

    def _connect_direct(self):
        """
        创建一个普通数据库连接（不使用连接池）；失败直接抛出 mysql.connector.Error
        """
        conn = mysql.connector.connect(autocommit=True, **self._connect_kwargs())
        self.logger.log_debug('[Conn] direct connection opened')
        return conn

    def get_connection(self):
        """
        获取数据库连接，根据是否启用连接池决定方式
        """
        if not self._pool_attempted:
            self._initialize_connection_pool()
        if self.use_pool and self.connection_pool:
            return self.connection_pool.get_connection()
        return self._connect_direct()

    def close_connection(self, conn):
        """
        安全关闭数据库连接，支持连接池连接和普通连接
        """
        if conn:
            try:
                # 连接池连接 close() 即归还；普通连接真正关闭
                conn.close()
            except Error as e:
                self.logger.log_error(f'关闭数据库连接时发生错误: {e}', exc_info=True)

    @contextmanager
    def connection_ctx(self):
        """
        上下文管理器：自动获取并释放数据库连接
        用法：
            with db.connection_ctx() as conn:
                with conn.cursor() as cur:
                    ...
        """
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.close_connection(conn)
