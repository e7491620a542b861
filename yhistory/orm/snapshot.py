"""实例快照工具

在 SQLAlchemy 实例状态上读取/保存文档快照。快照保存在
InstanceState.info 中，随实例存在，不占用模型属性。
"""

from typing import Any, Dict, Optional

from sqlalchemy import Column, inspect, select
from sqlalchemy.orm import Mapper

SNAPSHOT_KEY = "yhistory.snapshot"
ACTOR_KEY = "yhistory.actor"
REMOVED_KEY = "yhistory.removed"


def column_keys(mapper: Mapper) -> list:
    """模型所有列属性的键名"""
    return [attr.key for attr in mapper.column_attrs]


def load_unloaded(obj: Any) -> None:
    """加载实例上过期/未加载的列属性

    只能在允许发出查询的阶段（如 before_flush）调用
    """
    state = inspect(obj)
    if state.key is None:
        return
    unloaded = state.unloaded
    for key in column_keys(state.mapper):
        if key in unloaded:
            getattr(obj, key)


def instance_document(obj: Any) -> Dict[str, Any]:
    """实例当前已加载的列属性值（不会触发加载）"""
    state = inspect(obj)
    return {key: state.dict[key] for key in column_keys(state.mapper) if key in state.dict}


def fetch_unloaded(obj: Any, connection: Any) -> Dict[str, Any]:
    """从数据库读取实例上未加载的列值，不修改实例状态

    flush 之后，服务端默认值和 SQL 表达式形式的 onupdate 列已被过期，
    在 after_insert / after_update 中通过触发变更的同一连接按主键查询补齐。
    """
    state = inspect(obj)
    mapper = state.mapper
    unloaded = state.unloaded
    attrs = [
        attr for attr in mapper.column_attrs
        if attr.key in unloaded and isinstance(attr.columns[0], Column)
    ]
    if not attrs or connection is None:
        return {}

    criteria = []
    for column in mapper.primary_key:
        key = mapper.get_property_by_column(column).key
        if key not in state.dict:
            return {}
        criteria.append(column == state.dict[key])

    statement = (
        select(*[attr.columns[0] for attr in attrs])
        .select_from(mapper.persist_selectable)
        .where(*criteria)
    )
    row = connection.execute(statement).first()
    if row is None:
        return {}
    return {attr.key: value for attr, value in zip(attrs, row)}


def current_document(obj: Any, connection: Any = None) -> Dict[str, Any]:
    """实例的完整当前状态：已加载的值加上从数据库补齐的未加载列"""
    document = instance_document(obj)
    document.update(fetch_unloaded(obj, connection))
    return document


def capture_snapshot(obj: Any, document: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """保存并返回实例当前状态的快照"""
    snapshot = dict(document) if document is not None else instance_document(obj)
    inspect(obj).info[SNAPSHOT_KEY] = snapshot
    return snapshot


def get_snapshot(obj: Any) -> Optional[Dict[str, Any]]:
    snapshot = inspect(obj).info.get(SNAPSHOT_KEY)
    return dict(snapshot) if snapshot is not None else None


def original_document(obj: Any) -> Dict[str, Any]:
    """变更前的文档

    优先使用加载时捕获的快照；没有快照时从属性历史重建：
    有被替换的旧值取旧值，否则取未变化的值，都没有则跳过该字段。
    """
    snapshot = get_snapshot(obj)
    if snapshot is not None:
        return snapshot

    state = inspect(obj)
    document = {}
    for key in column_keys(state.mapper):
        history = state.attrs[key].history
        if history.deleted:
            document[key] = history.deleted[0]
        elif history.unchanged:
            document[key] = history.unchanged[0]
    return document


def has_column_changes(obj: Any) -> bool:
    """实例是否有列属性变更"""
    state = inspect(obj)
    return any(state.attrs[key].history.has_changes() for key in column_keys(state.mapper))


__all__ = [
    "SNAPSHOT_KEY",
    "ACTOR_KEY",
    "REMOVED_KEY",
    "column_keys",
    "load_unloaded",
    "instance_document",
    "fetch_unloaded",
    "current_document",
    "capture_snapshot",
    "get_snapshot",
    "original_document",
    "has_column_changes",
]
