"""日志模块

提供历史记录组件使用的日志工具：
- 日志记录器获取（自动推断模块名）
- 控制台 + 轮转文件输出
- 微秒精度时间戳

使用示例:
    from yhistory.log import get_logger, setup_logger

    logger = get_logger()
    setup_logger("yhistory", level="DEBUG", log_file="logs/history.log")
"""

from .logger import (
    setup_logger,
    setup_history_logger,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    logger,
    get_logger,
)

__all__ = [
    "setup_logger",
    "setup_history_logger",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "logger",
    "get_logger",
]
