"""差异计算引擎

逐字段比较文档的原始版本与新版本，生成变更集。

默认算法（对每个顶层字段）:
1. 自动维护的时间戳字段（默认 updated_at）永远不计入差异
2. 原值有效、新值缺失或为空值 -> 删除标记 DELETED（最终差异中为 None）
3. 原值缺失或为空值、新值有效 -> 新值（新增）
4. 两者都是日期/时间 -> 值不相等时返回新值
5. 两者都是映射 -> 递归比较，只返回变化的子字段
6. 其他 -> 值不相等时返回新值
7. 没有变化 -> None（该字段不出现在差异中）

空值指 None、False、数值 0 和空字符串；空字典、空列表仍是有效值。
列表不逐元素递归：两个列表不相等时整体记录新列表。

自定义算法与默认算法签名相同，返回 None 表示"无变化"，
返回 DELETED 表示"字段被删除"，其他任何值（包括 0、False、""）都视为变更后的值。

使用示例:
    from yhistory.core.diff import compute_diff

    diff = compute_diff(
        original={"_id": "a1", "title": "A", "message": "M"},
        new={"_id": "a1", "title": "B", "message": "M"},
    )
    # -> {"_id": "a1", "title": "B"}
"""

from datetime import date, datetime, time
from decimal import Decimal
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional


class _Deleted:
    """删除标记，区别于"无变化"（None）和真实的空值"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETED"

    def __reduce__(self):
        return (_Deleted, ())


DELETED = _Deleted()

DEFAULT_TIMESTAMP_FIELD = "updated_at"

DiffAlgo = Callable[[str, Any, Any], Any]

_TEMPORAL_TYPES = (datetime, date, time)


def _ordered_keys(new: Mapping[str, Any], original: Mapping[str, Any]) -> List[str]:
    """新文档的键在前，其后是只在原文档中出现的键"""
    keys = list(new.keys())
    keys.extend(key for key in original.keys() if key not in new)
    return keys


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, Decimal, str, bytes)):
        return not value
    return False


def _value_change(new_value: Any, original_value: Any) -> Any:
    """按默认规则比较单个值（不含时间戳字段的排除）"""
    original_empty = _is_empty(original_value)
    new_empty = _is_empty(new_value)
    if not original_empty and new_empty:
        return DELETED
    if original_empty and not new_empty:
        return new_value
    if isinstance(new_value, _TEMPORAL_TYPES) and isinstance(original_value, _TEMPORAL_TYPES):
        return new_value if new_value != original_value else None
    if isinstance(new_value, Mapping) and isinstance(original_value, Mapping):
        return structural_diff(original_value, new_value)
    return new_value if new_value != original_value else None


def structural_diff(original: Mapping[str, Any], new: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """映射的结构化差异

    只返回发生变化的子字段，子字段被删除时值为 None。

    Returns:
        变化的子字段字典；完全相同时返回 None
    """
    result = {}
    for key in _ordered_keys(new, original):
        changed = _value_change(new.get(key), original.get(key))
        if changed is None:
            continue
        result[key] = None if changed is DELETED else changed
    return result or None


def default_diff_algo(
    key: str,
    new_value: Any,
    original_value: Any,
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD,
) -> Any:
    """默认的逐字段差异算法

    Args:
        key: 字段名
        new_value: 新值（字段缺失时为 None）
        original_value: 原值（字段缺失时为 None）
        timestamp_field: 永远不计入差异的时间戳字段名

    Returns:
        变更后的值、DELETED 或 None（无变化）
    """
    if key == timestamp_field:
        return None
    return _value_change(new_value, original_value)


def resolve_deleted(value: Any) -> Any:
    """把（可能嵌套的）删除标记替换为 None"""
    if value is DELETED:
        return None
    if isinstance(value, dict):
        return {k: resolve_deleted(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_deleted(v) for v in value]
    return value


def compute_diff(
    original: Optional[Mapping[str, Any]],
    new: Optional[Mapping[str, Any]],
    id_key: str = "_id",
    diff_algo: Optional[DiffAlgo] = None,
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD,
) -> Dict[str, Any]:
    """计算仅差异模式下的更新差异

    结果总是包含标识字段 id_key，以及算法返回非 None 的所有字段。

    Args:
        original: 原始文档
        new: 新文档
        id_key: 文档标识字段名
        diff_algo: 自定义逐字段算法，提供后完全替代默认算法
        timestamp_field: 默认算法忽略的时间戳字段名

    Returns:
        差异字典，删除的字段值为 None
    """
    original = original or {}
    new = new or {}
    algo = diff_algo or partial(default_diff_algo, timestamp_field=timestamp_field)

    diff: Dict[str, Any] = {id_key: new.get(id_key, original.get(id_key))}
    for key in _ordered_keys(new, original):
        if key == id_key:
            continue
        changed = algo(key, new.get(key), original.get(key))
        if changed is None:
            continue
        diff[key] = resolve_deleted(changed)
    return diff


__all__ = [
    "DELETED",
    "DEFAULT_TIMESTAMP_FIELD",
    "DiffAlgo",
    "default_diff_algo",
    "structural_diff",
    "resolve_deleted",
    "compute_diff",
]
