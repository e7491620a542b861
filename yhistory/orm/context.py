"""历史上下文（Session 方式）

通过 session.info 显式传递当前操作的 HistoryContext（操作者、请求信息等），
生命周期事件从触发它的 Session 上读取，不依赖全局状态。

使用方式：
    from yhistory.orm import set_actor, clear_history_context

    set_actor(session, current_user)
    # 执行操作...
    clear_history_context(session)

    # 或者限定在一个代码块内
    with history_context(session, user=current_user, request_id="r-1"):
        session.commit()
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional

from ..core.actor import HistoryContext

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


HISTORY_CONTEXT_KEY = "yhistory.context"


def set_history_context(session: "Session", context: Optional[Mapping[str, Any]] = None, **values: Any) -> HistoryContext:
    """设置当前 Session 的历史上下文（替换已有上下文）

    Example:
        set_history_context(session, user=user, request_id="r-1")
    """
    history_context_obj = HistoryContext(context, **values)
    session.info[HISTORY_CONTEXT_KEY] = history_context_obj
    return history_context_obj


def get_history_context(session: Optional["Session"]) -> Optional[HistoryContext]:
    """获取当前 Session 的历史上下文，未设置时返回 None"""
    if session is None:
        return None
    return session.info.get(HISTORY_CONTEXT_KEY)


def set_actor(session: "Session", actor: Any, path: str = "user") -> HistoryContext:
    """设置当前操作者

    保留上下文中的其他值，按点号路径写入操作者。

    Args:
        session: SQLAlchemy session对象
        actor: 用户对象、字典或用户ID
        path: 写入路径，需与 ModifiedByConfig.context_path 一致

    Example:
        set_actor(session, user)                      # -> {"user": user}
        set_actor(session, user, "request.user")      # -> {"request": {"user": user}}
    """
    current = get_history_context(session)
    data = dict(current or {})

    keys = path.split(".")
    target = data
    for key in keys[:-1]:
        nested = target.get(key)
        nested = dict(nested) if isinstance(nested, Mapping) else {}
        target[key] = nested
        target = nested
    target[keys[-1]] = actor

    return set_history_context(session, data)


def clear_history_context(session: "Session") -> None:
    """清除当前 Session 的历史上下文"""
    session.info.pop(HISTORY_CONTEXT_KEY, None)


@contextmanager
def history_context(session: "Session", context: Optional[Mapping[str, Any]] = None, **values: Any) -> Iterator[HistoryContext]:
    """在代码块内使用指定的历史上下文，退出时恢复原上下文"""
    previous = get_history_context(session)
    try:
        yield set_history_context(session, context, **values)
    finally:
        if previous is None:
            clear_history_context(session)
        else:
            session.info[HISTORY_CONTEXT_KEY] = previous


__all__ = [
    "HISTORY_CONTEXT_KEY",
    "set_history_context",
    "get_history_context",
    "set_actor",
    "clear_history_context",
    "history_context",
]
