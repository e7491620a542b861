"""文档清洗

把任意嵌套数据转换成可安全持久化的纯 JSON 结构：
- 通过 JSON 往返实现深拷贝，无法序列化的值直接失败
- 去掉第一个以 '$' 开头的键名前缀（'$in' -> 'in'）
- 移除顶层的存储版本号字段

已知限制：
    每次调用只处理遇到的第一个 '$' 键（深度优先、文档顺序）。
    含有多个保留键的文档不会被完全清洗，例如
    {"$in": [1], "$nin": [2]} 清洗后为 {"in": [1], "$nin": [2]}。
"""

import base64
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping
from uuid import UUID

from ..exceptions import SerializationError


RESERVED_PREFIX = "$"
DEFAULT_VERSION_KEY = "__v"


def _encode_default(value: Any) -> Any:
    """json.dumps 的 default 钩子，处理常见的宿主类型"""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return list(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _strip_first_reserved_key(value: Any) -> bool:
    """原地重命名遇到的第一个保留键，返回是否做过重命名"""
    if isinstance(value, dict):
        for key in list(value.keys()):
            if isinstance(key, str) and key.startswith(RESERVED_PREFIX):
                renamed = {}
                for k, v in value.items():
                    renamed[key[1:] if k == key else k] = v
                value.clear()
                value.update(renamed)
                return True
            if _strip_first_reserved_key(value[key]):
                return True
    elif isinstance(value, list):
        for item in value:
            if _strip_first_reserved_key(item):
                return True
    return False


def to_plain(value: Any) -> Any:
    """JSON 往返深拷贝

    Raises:
        SerializationError: 值无法序列化（包括循环引用）
    """
    try:
        encoded = json.dumps(value, default=_encode_default)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"文档无法序列化: {e}", value_type=type(value)) from e
    return json.loads(encoded)


def sanitize(value: Any, version_key: str = DEFAULT_VERSION_KEY) -> Any:
    """清洗文档，返回可持久化的深拷贝

    Args:
        value: 待清洗的值，通常是字段名到值的映射
        version_key: 需要移除的顶层版本号字段名，传入 None 则不移除

    Returns:
        清洗后的值（与输入不共享任何可变对象）

    Raises:
        SerializationError: 值无法序列化

    使用示例:
        sanitize({"_id": {"$in": ["a", "b"]}, "__v": 3})
        # -> {"_id": {"in": ["a", "b"]}}
    """
    plain = to_plain(value)
    _strip_first_reserved_key(plain)
    if version_key and isinstance(plain, dict):
        plain.pop(version_key, None)
    return plain


def sanitize_mapping(value: Mapping[str, Any] = None, version_key: str = DEFAULT_VERSION_KEY) -> Dict[str, Any]:
    """清洗映射，None 视为空映射"""
    return sanitize(dict(value or {}), version_key=version_key)


__all__ = [
    "RESERVED_PREFIX",
    "DEFAULT_VERSION_KEY",
    "to_plain",
    "sanitize",
    "sanitize_mapping",
]
