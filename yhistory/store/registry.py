"""历史存储注册表

按历史集合名缓存 HistoryStore，每个名称只创建一次（先注册者生效），
之后的调用都返回同一个句柄。注册表是显式对象：进程使用 default_registry，
测试可以创建自己的实例并在结束时 clear()。
"""

import threading
from typing import Callable, Dict, List, Optional

from sqlalchemy import MetaData

from ..config import HistorySettings
from ..core.options import HistoryOptions
from ..log import get_logger
from .history_store import HistoryStore

logger = get_logger("yhistory.store.registry")

StoreFactory = Callable[..., HistoryStore]


class HistoryStoreRegistry:
    """历史存储注册表

    使用示例:
        registry = HistoryStoreRegistry()
        store = registry.get_store("posts_history", options)
        assert registry.get_store("posts_history") is store
    """

    def __init__(
        self,
        settings: Optional[HistorySettings] = None,
        store_factory: Optional[StoreFactory] = None,
    ):
        self.settings = settings
        self.metadata = MetaData()
        self._store_factory = store_factory or HistoryStore
        self._stores: Dict[str, HistoryStore] = {}
        self._lock = threading.Lock()

    def get_store(self, name: str, options: Optional[HistoryOptions] = None) -> HistoryStore:
        """获取（必要时创建）历史存储句柄

        同一名称的并发首次访问只会构建一个句柄，所有调用方得到同一实例。
        已存在时忽略传入的 options。
        """
        store = self._stores.get(name)
        if store is not None:
            return store

        with self._lock:
            store = self._stores.get(name)
            if store is None:
                store = self._store_factory(
                    name,
                    options or HistoryOptions(),
                    metadata=self.metadata,
                    settings=self.settings,
                )
                self._stores[name] = store
                logger.debug(f"已注册历史存储: {name}")
        return store

    def get(self, name: str) -> Optional[HistoryStore]:
        return self._stores.get(name)

    def names(self) -> List[str]:
        return list(self._stores)

    def __contains__(self, name: str) -> bool:
        return name in self._stores

    def __len__(self) -> int:
        return len(self._stores)

    def create_all(self, bind) -> None:
        """为所有已注册的历史集合建表"""
        self.metadata.create_all(bind)

    def clear(self) -> None:
        """移除所有句柄及其表定义（不会删除数据库中的表）"""
        with self._lock:
            self._stores.clear()
            self.metadata.clear()


default_registry = HistoryStoreRegistry()


__all__ = [
    "HistoryStoreRegistry",
    "StoreFactory",
    "default_registry",
]
