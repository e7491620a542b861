"""操作者（modifiedBy）解析

操作者身份通过显式的 HistoryContext 沿调用链传递（ORM 集成中保存在
session.info 上），不依赖隐藏的全局状态。写入时拿不到操作者的情况下，
可以使用读取阶段捕获的值作为回退。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Tuple

from sqlalchemy import JSON, inspect
from sqlalchemy.types import TypeEngine

from ..log import get_logger
from ..utils import lookup_path

logger = get_logger("yhistory.actor")


class HistoryContext(Mapping[str, Any]):
    """单次请求/操作的显式上下文

    只读映射，支持按点号路径查找。

    使用示例:
        context = HistoryContext(user={"id": 1, "name": "tom"}, request_id="r-1")
        context.lookup("user.name")  # -> "tom"
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        data = dict(values or {})
        data.update(kwargs)
        self._data = data

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def lookup(self, path: str, default: Any = None) -> Any:
        """按点号分隔的路径读取值"""
        return lookup_path(self._data, path, default)

    def merged(self, **kwargs: Any) -> "HistoryContext":
        """返回合并了新值的上下文副本"""
        data = dict(self._data)
        data.update(kwargs)
        return HistoryContext(data)

    def __repr__(self) -> str:
        return f"HistoryContext({self._data!r})"


@dataclass(frozen=True)
class ModifiedByConfig:
    """操作者追踪配置

    Attributes:
        context_path: 在 HistoryContext 中查找操作者的路径，默认 "user"
        blacklist: 写入历史前从操作者对象中移除的字段
        column_type: modifiedBy 列的 SQLAlchemy 类型，默认 JSON
    """
    context_path: str = "user"
    blacklist: Tuple[str, ...] = field(default_factory=tuple)
    column_type: Optional[Any] = None

    @classmethod
    def from_mapping(cls, value: Mapping[str, Any]) -> "ModifiedByConfig":
        """从配置字典创建，兼容 contextPath/schemaType/type 等驼峰键名"""
        context_path = value.get("context_path", value.get("contextPath", "user"))
        blacklist = value.get("blacklist") or ()
        column_type = value.get(
            "column_type", value.get("schema_type", value.get("schemaType", value.get("type")))
        )
        return cls(context_path=context_path, blacklist=tuple(blacklist), column_type=column_type)

    def sql_type(self) -> TypeEngine:
        """modifiedBy 列的 SQLAlchemy 类型实例"""
        column_type = self.column_type or JSON
        return column_type() if isinstance(column_type, type) else column_type


def normalize_actor(actor: Any) -> Any:
    """把操作者转换为可嵌入历史记录的普通值

    返回值总是副本，修改它不会影响调用方持有的操作者对象。

    支持:
        - 映射 -> dict 副本
        - 带 to_dict() 的对象（如 ORM 模型）
        - Pydantic 模型（model_dump()）
        - SQLAlchemy 映射对象 -> 列属性字典
        - 标量（用户 ID 等）原样返回
    """
    if actor is None or isinstance(actor, (str, int, float, bool)):
        return actor
    if isinstance(actor, Mapping):
        return dict(actor)
    to_dict = getattr(actor, "to_dict", None)
    if callable(to_dict):
        return dict(to_dict())
    model_dump = getattr(actor, "model_dump", None)
    if callable(model_dump):
        return dict(model_dump())
    state = inspect(actor, raiseerr=False)
    mapper = getattr(state, "mapper", None)
    if mapper is not None:
        return {attr.key: getattr(actor, attr.key) for attr in mapper.column_attrs}
    return actor


class ActorResolver:
    """操作者解析器

    使用示例:
        resolver = ActorResolver(ModifiedByConfig(context_path="user", blacklist=("password",)))
        resolver.resolve(HistoryContext(user={"id": 1, "password": "x"}))
        # -> {"id": 1}
    """

    def __init__(self, config: ModifiedByConfig):
        self.config = config

    def current(self, context: Optional[Mapping[str, Any]]) -> Any:
        """从上下文读取当前操作者，未找到返回 None"""
        if not context:
            return None
        if isinstance(context, HistoryContext):
            return context.lookup(self.config.context_path)
        return lookup_path(context, self.config.context_path)

    def resolve(self, context: Optional[Mapping[str, Any]] = None, fallback: Any = None) -> Any:
        """解析要写入历史记录的操作者

        Args:
            context: 当前操作的上下文
            fallback: 读取阶段捕获的操作者，上下文中没有时使用

        Returns:
            已移除黑名单字段的操作者副本；无法解析时返回 None（字段省略）
        """
        actor = self.current(context)
        if actor is None:
            actor = fallback
        if actor is None:
            logger.debug(f"未能从路径 '{self.config.context_path}' 解析到操作者，modifiedBy 将被省略")
            return None

        actor = normalize_actor(actor)
        if isinstance(actor, dict):
            for key in self.config.blacklist:
                actor.pop(key, None)
        return actor


__all__ = [
    "HistoryContext",
    "ModifiedByConfig",
    "ActorResolver",
    "normalize_actor",
]
