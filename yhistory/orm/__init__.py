"""SQLAlchemy 集成

- HistoryPlugin / track_history: 为模型启用历史记录
- patch_documents: 按过滤条件局部更新并记录历史
- set_actor / set_history_context 等: 通过 session.info 传递操作上下文
"""

from .context import (
    HISTORY_CONTEXT_KEY,
    clear_history_context,
    get_history_context,
    history_context,
    set_actor,
    set_history_context,
)
from .plugin import HistoryPlugin, track_history
from .patch import patch_documents

__all__ = [
    "HISTORY_CONTEXT_KEY",
    "clear_history_context",
    "get_history_context",
    "history_context",
    "set_actor",
    "set_history_context",
    "HistoryPlugin",
    "track_history",
    "patch_documents",
]
