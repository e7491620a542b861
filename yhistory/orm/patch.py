"""基于过滤条件的局部更新

不加载实例，直接执行 UPDATE ... WHERE，并在执行前记录一条 update 历史。
没有已加载的目标实例时，过滤条件本身被当作变更前的文档使用。
"""

from typing import Any, Dict, Mapping, Optional

from sqlalchemy import inspect, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from ..core.interceptor import PartialPatch
from ..core.record import HistoryRecord
from ..exceptions import ConfigurationError
from ..log import get_logger
from .context import get_history_context
from .snapshot import SNAPSHOT_KEY, ACTOR_KEY, get_snapshot, instance_document

logger = get_logger("yhistory.orm.patch")


def _loaded_target(session: Session, model, id_key: str, filters: Mapping[str, Any]):
    """过滤条件只指向一个已加载的实例时返回该实例"""
    if set(filters) != {id_key}:
        return None
    value = filters[id_key]
    if value is None or isinstance(value, (list, tuple, set, frozenset, dict)):
        return None
    return session.identity_map.get(identity_key(model, value))


def patch_documents(
    session: Session,
    model,
    filters: Dict[str, Any],
    values: Dict[str, Any],
    extra_fields: Optional[Mapping[str, Any]] = None,
    synchronize_session: Any = "auto",
) -> int:
    """按过滤条件局部更新并记录历史

    Args:
        session: 数据库会话
        model: 已启用历史记录的模型
        filters: 过滤条件，列表值表示 IN 查询
        values: 要更新的字段和值
        extra_fields: 写入 additionalFields 的附加上下文
        synchronize_session: 传给 ORM UPDATE 的同步策略

    Returns:
        受影响的行数

    使用示例:
        patch_documents(session, Post, {"id": 1}, {"title": "B"})
        patch_documents(session, Post, {"id": [1, 2]}, {"status": "archived"})
    """
    plugin = getattr(model, "__history_plugin__", None)
    if plugin is None:
        raise ConfigurationError(f"模型 {model.__name__} 未启用历史记录")
    if not values:
        return 0

    stmt = update(model)
    for key, value in filters.items():
        column = getattr(model, key, None)
        if column is None:
            raise ConfigurationError(f"模型 {model.__name__} 没有字段 '{key}'")
        if isinstance(value, (list, tuple, set, frozenset)):
            stmt = stmt.where(column.in_(list(value)))
        else:
            stmt = stmt.where(column == value)

    target = _loaded_target(session, model, plugin.target.id_key, filters)
    snapshot = None
    actor_fallback = None
    if target is not None:
        snapshot = get_snapshot(target) or instance_document(target)
        actor_fallback = inspect(target).info.get(ACTOR_KEY)

    record: HistoryRecord = plugin.interceptor.on_update(
        PartialPatch(filters, values, snapshot),
        session.connection(),
        extra_fields=extra_fields,
        context=get_history_context(session),
        actor_fallback=actor_fallback,
    )

    result = session.execute(
        stmt.values(**values),
        execution_options={"synchronize_session": synchronize_session},
    )

    if target is not None and plugin.options.diff_only:
        info = inspect(target).info
        if SNAPSHOT_KEY in info:
            info[SNAPSHOT_KEY].update(values)

    logger.debug(f"局部更新 {model.__name__}: {result.rowcount} 行, documentId={record.document_id}")
    return result.rowcount


__all__ = [
    "patch_documents",
]
