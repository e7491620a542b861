"""历史记录异常类

定义历史记录相关的异常层次结构。

构建或保存历史记录时的任何失败都会作为触发变更的失败抛出，
不存在"记录日志后继续"的模式。
"""

from typing import Optional


class HistoryError(Exception):
    """历史记录错误基类

    所有历史记录相关的异常都继承自此类
    """
    pass


class SerializationError(HistoryError):
    """序列化错误

    文档中包含无法通过 JSON 往返转换的值时抛出，
    会中止历史记录保存以及触发它的变更操作。
    """

    def __init__(self, message: str, value_type: Optional[type] = None):
        self.value_type = value_type
        super().__init__(message)


class MetadataResolutionError(HistoryError):
    """元数据解析错误

    某个元数据提取器执行失败时抛出，包含元数据键名和原始异常
    """

    def __init__(self, key: str, original_error: Exception):
        self.key = key
        self.original_error = original_error
        super().__init__(f"元数据 '{key}' 解析失败: {original_error}")

    def __repr__(self) -> str:
        return f"MetadataResolutionError(key={self.key!r}, original_error={self.original_error!r})"


class StoreError(HistoryError):
    """存储错误

    底层持久化调用失败（连接、约束冲突等）时抛出，原始异常保存在 original_error 中
    """

    def __init__(self, collection_name: str, original_error: Exception, action: str = "保存"):
        self.collection_name = collection_name
        self.original_error = original_error
        self.action = action
        super().__init__(f"历史集合 '{collection_name}' {action}失败: {original_error}")

    def __repr__(self) -> str:
        return (
            f"StoreError(collection_name={self.collection_name!r}, "
            f"action={self.action!r}, original_error={self.original_error!r})"
        )


class ConfigurationError(HistoryError):
    """配置错误

    仅在挂载时发现结构性错误的配置项（未知选项、无效提取器等）时抛出。
    写入时无法解析操作者不属于配置错误，modifiedBy 字段会被直接省略。
    """
    pass


__all__ = [
    "HistoryError",
    "SerializationError",
    "MetadataResolutionError",
    "StoreError",
    "ConfigurationError",
]
