"""历史存储模块

- HistoryStore: 单个历史集合的存储句柄（SQLAlchemy 表）
- HistoryStoreRegistry: 按名称缓存存储句柄的注册表
"""

from .history_store import HistoryStore, build_index
from .registry import HistoryStoreRegistry, StoreFactory, default_registry

__all__ = [
    "HistoryStore",
    "build_index",
    "HistoryStoreRegistry",
    "StoreFactory",
    "default_registry",
]
