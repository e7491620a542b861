"""通用工具函数"""

from typing import Any, Mapping, Union


# 单位转换表（按长度降序排列）
SIZE_UNITS = [
    ('TB', 1024 ** 4),
    ('GB', 1024 ** 3),
    ('MB', 1024 ** 2),
    ('KB', 1024),
    ('B', 1),
]


def parse_file_size(size_str: Union[str, int, float]) -> int:
    """解析文件大小字符串

    支持的单位：B, KB, MB, GB, TB（不区分大小写）

    Args:
        size_str: 文件大小字符串，如 "10MB", "512KB", "1.5GB"
                  也可以直接传入数字（字节数）

    Returns:
        int: 文件大小的字节数

    Raises:
        ValueError: 当格式无效时抛出异常
    """
    if isinstance(size_str, (int, float)):
        return int(size_str)

    size_str = str(size_str).strip().upper()
    if not size_str:
        raise ValueError("文件大小字符串不能为空")

    for unit, multiplier in SIZE_UNITS:
        if size_str.endswith(unit):
            number_str = size_str[:-len(unit)].strip()
            try:
                return int(float(number_str) * multiplier)
            except ValueError:
                raise ValueError(f"无法解析文件大小: {size_str}")

    try:
        return int(float(size_str))
    except ValueError:
        raise ValueError(f"无法解析文件大小: {size_str}")


def lookup_path(data: Any, path: str, default: Any = None) -> Any:
    """按点号分隔的路径读取嵌套值

    每一级优先按映射键读取，其次按对象属性读取。

    Args:
        data: 映射或对象
        path: 路径，如 "request.user"
        default: 路径不存在时的返回值

    Returns:
        路径对应的值
    """
    value = data
    for key in path.split("."):
        if isinstance(value, Mapping):
            if key not in value:
                return default
            value = value[key]
        elif value is not None and hasattr(value, key):
            value = getattr(value, key)
        else:
            return default
    return value
