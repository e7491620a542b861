"""
日志工具模块
提供简化的日志配置功能
"""

import inspect
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from typing import Any, Optional


class MicrosecondFormatter(logging.Formatter):
    """支持微秒精度的日志格式化器"""

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        if datefmt:
            s = time.strftime(datefmt, ct)
        else:
            s = time.strftime("%Y-%m-%d %H:%M:%S", ct)
        # 添加微秒部分（6位数）
        return "%s.%06d" % (s, (record.created - int(record.created)) * 1000000)


# 默认日志格式
DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"


def create_formatter(
    log_format: str = None,
    datefmt: str = "%Y-%m-%d %H:%M:%S",
    use_microseconds: bool = True
) -> logging.Formatter:
    """创建日志格式化器

    Args:
        log_format: 日志格式字符串
        datefmt: 时间格式
        use_microseconds: 是否使用微秒精度

    Returns:
        日志格式化器
    """
    fmt = log_format or DEFAULT_LOG_FORMAT
    if use_microseconds:
        return MicrosecondFormatter(fmt=fmt, datefmt=datefmt)
    return logging.Formatter(fmt, datefmt=datefmt)


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    propagate: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    encoding: str = "utf-8",
) -> logging.Logger:
    """设置并返回配置好的日志记录器

    Args:
        name: 日志记录器名称，默认为root logger
        level: 日志级别，可选：DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_file: 日志文件路径，如果不指定则不写入文件
        log_format: 日志格式，如果不指定则使用默认格式
        console: 是否输出到控制台
        use_microseconds: 是否使用微秒精度时间戳
        propagate: 是否传播到父日志器
        max_bytes: 单个日志文件最大字节数，超过后轮转
        backup_count: 轮转保留的备份文件数量
        encoding: 文件编码

    Returns:
        配置好的日志记录器

    使用示例:
        from yhistory.log import setup_logger

        # 创建简单日志记录器
        logger = setup_logger("yhistory", level="DEBUG")

        # 创建带文件输出的日志记录器
        logger = setup_logger(
            "yhistory",
            level="DEBUG",
            log_file="logs/history.log",
            max_bytes=10*1024*1024,
            backup_count=5
        )
    """
    # 获取或创建日志记录器
    _logger = logging.getLogger(name) if name else logging.getLogger()
    _logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _logger.propagate = propagate

    # 清除现有的处理器
    _logger.handlers.clear()

    formatter = create_formatter(log_format, use_microseconds=use_microseconds)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        _logger.addHandler(console_handler)

    if log_file:
        # 确保日志目录存在
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        if max_bytes > 0:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding=encoding,
            )
        else:
            file_handler = logging.FileHandler(log_file, encoding=encoding)

        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)

    return _logger


def setup_history_logger(config: Any = None, **kwargs) -> logging.Logger:
    """按配置对象设置 yhistory 日志器

    Args:
        config: 日志配置对象（LoggingSettings），提供后自动提取配置
        **kwargs: 传递给 setup_logger 的覆盖参数

    Returns:
        名为 "yhistory" 的日志记录器

    使用示例:
        from yhistory.config import get_settings
        from yhistory.log import setup_history_logger

        setup_history_logger(get_settings().logging)
    """
    options = {}
    if config is not None:
        options = {
            "level": getattr(config, "level", "INFO"),
            "log_file": getattr(config, "file_path", None) or None,
            "console": getattr(config, "enable_console", True),
            "max_bytes": getattr(config, "parsed_file_max_bytes", 10 * 1024 * 1024),
            "backup_count": getattr(config, "file_backup_count", 5),
            "encoding": getattr(config, "file_encoding", "utf-8"),
        }
    options.update(kwargs)
    return setup_logger(name="yhistory", propagate=False, **options)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """获取日志记录器，支持自动推断模块名

    无参数调用时，自动从调用栈获取模块的 __name__ 作为日志器名称。
    有参数调用时，简写名称（不含点号）自动添加 'yhistory.' 前缀。

    Args:
        name: 日志记录器名称。
              - None: 自动使用调用模块的 __name__
              - 字符串: 使用指定名称（如 "store" -> "yhistory.store"）

    Returns:
        日志记录器实例

    使用示例:
        from yhistory.log import get_logger

        logger = get_logger()            # 在 yhistory/store/registry.py 中 -> "yhistory.store.registry"
        logger = get_logger("orm")       # -> "yhistory.orm"
        logger = get_logger("sqlalchemy.engine")  # -> "sqlalchemy.engine"
    """
    if name is None:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            name = frame.f_back.f_globals.get('__name__', 'yhistory')
        else:
            name = 'yhistory'
    elif name != 'yhistory' and '.' not in name:
        name = f"yhistory.{name}"

    return logging.getLogger(name)


# 通用日志记录器
logger = logging.getLogger("yhistory")
