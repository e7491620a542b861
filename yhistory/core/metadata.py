"""元数据解析

每个元数据字段由一个提取器计算，提取器的类型在配置时明确决定：
- FieldExtractor: 从新文档复制一个字段
- SyncExtractor: 同步函数 fn(original, new) -> value
- AsyncExtractor: 协程函数 async fn(original, new) -> value

所有字段互相独立（不会看到其他字段的结果），异步提取器并发执行，
任意一个失败会取消其余等待并抛出 MetadataResolutionError。

使用示例:
    from yhistory.core.metadata import MetadataResolver, metadata_field

    async def fetch_title(original, new):
        return await load_title(new["_id"])

    resolver = MetadataResolver([
        metadata_field("title", "title"),
        metadata_field("changed", lambda original, new: original != new),
        metadata_field("remote_title", fetch_title),
    ])
    metadata = resolver.resolve(original, new)
"""

import asyncio
import inspect
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import JSON
from sqlalchemy.types import TypeEngine

from ..exceptions import ConfigurationError, MetadataResolutionError
from ..log import get_logger

logger = get_logger("yhistory.metadata")

Document = Mapping[str, Any]


@dataclass(frozen=True)
class FieldExtractor:
    """从新文档中复制字段值"""
    field: str

    def __call__(self, original: Document, new: Document) -> Any:
        return new.get(self.field)


@dataclass(frozen=True)
class SyncExtractor:
    """同步提取函数"""
    fn: Callable[[Document, Document], Any]

    def __call__(self, original: Document, new: Document) -> Any:
        return self.fn(original, new)


@dataclass(frozen=True)
class AsyncExtractor:
    """异步提取函数（协程函数）"""
    fn: Callable[[Document, Document], Awaitable[Any]]

    async def __call__(self, original: Document, new: Document) -> Any:
        return await self.fn(original, new)


Extractor = Union[FieldExtractor, SyncExtractor, AsyncExtractor]


@dataclass(frozen=True)
class MetadataField:
    """一个元数据字段配置

    Attributes:
        key: 写入历史记录的字段名（同时也是历史表的列名）
        extractor: 提取器
        column_type: 历史表中该列的 SQLAlchemy 类型，默认 JSON
    """
    key: str
    extractor: Extractor
    column_type: Optional[Any] = None

    @property
    def is_async(self) -> bool:
        return isinstance(self.extractor, AsyncExtractor)

    def sql_type(self) -> TypeEngine:
        column_type = self.column_type or JSON
        return column_type() if isinstance(column_type, type) else column_type


def metadata_field(key: str, value: Any, column_type: Optional[Any] = None) -> MetadataField:
    """根据 value 的类型构建元数据字段

    Args:
        key: 元数据键名
        value: 字段名字符串、同步函数、协程函数或已构建的提取器
        column_type: 历史表中该列的类型

    Raises:
        ConfigurationError: value 不是可识别的提取器
    """
    if not key or not isinstance(key, str):
        raise ConfigurationError(f"元数据键名必须是非空字符串: {key!r}")
    if isinstance(value, (FieldExtractor, SyncExtractor, AsyncExtractor)):
        extractor = value
    elif isinstance(value, str):
        extractor = FieldExtractor(value)
    elif inspect.iscoroutinefunction(value):
        extractor = AsyncExtractor(value)
    elif callable(value):
        extractor = SyncExtractor(value)
    else:
        raise ConfigurationError(f"元数据 '{key}' 的提取器无效: {value!r}")
    return MetadataField(key=key, extractor=extractor, column_type=column_type)


def parse_metadata(items: Optional[Sequence[Any]]) -> tuple:
    """把配置中的元数据列表转换为 MetadataField 元组

    列表元素可以是 MetadataField，或 {"key", "value", "schema"/"column_type"} 字典
    """
    fields: List[MetadataField] = []
    for item in items or ():
        if isinstance(item, MetadataField):
            fields.append(item)
        elif isinstance(item, Mapping):
            if "key" not in item or "value" not in item:
                raise ConfigurationError(f"元数据配置缺少 key 或 value: {item!r}")
            column_type = item.get("column_type", item.get("schema"))
            fields.append(metadata_field(item["key"], item["value"], column_type))
        else:
            raise ConfigurationError(f"无法识别的元数据配置: {item!r}")

    keys = [f.key for f in fields]
    duplicated = {k for k in keys if keys.count(k) > 1}
    if duplicated:
        raise ConfigurationError(f"元数据键名重复: {sorted(duplicated)}")
    return tuple(fields)


class MetadataResolver:
    """元数据解析器"""

    def __init__(self, fields: Sequence[MetadataField]):
        self.fields = tuple(fields)

    def __bool__(self) -> bool:
        return bool(self.fields)

    async def aresolve(self, original: Document, new: Document) -> Dict[str, Any]:
        """解析所有元数据字段（协程形式）

        Raises:
            MetadataResolutionError: 任意提取器失败
        """
        results: Dict[str, Any] = {}
        pending: Dict[asyncio.Task, str] = {}

        for item in self.fields:
            if item.is_async:
                pending[asyncio.ensure_future(item.extractor(original, new))] = item.key
                continue
            try:
                results[item.key] = item.extractor(original, new)
            except Exception as e:
                _cancel(pending)
                raise MetadataResolutionError(item.key, e) from e

        if pending:
            done, not_done = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                error = task.exception()
                if error is not None:
                    _cancel({t: k for t, k in pending.items() if t in not_done})
                    key = pending[task]
                    logger.warning(f"异步元数据 '{key}' 解析失败: {error}")
                    raise MetadataResolutionError(key, error) from error
            for task, key in pending.items():
                results[key] = task.result()

        # 按配置顺序输出
        return {item.key: results[item.key] for item in self.fields}

    def resolve(self, original: Document, new: Document) -> Dict[str, Any]:
        """解析所有元数据字段（同步形式）

        没有异步提取器时直接在当前线程执行；否则在新的事件循环中执行，
        当前线程已有运行中的事件循环时改在工作线程中执行。
        """
        if not any(item.is_async for item in self.fields):
            results = {}
            for item in self.fields:
                try:
                    results[item.key] = item.extractor(original, new)
                except Exception as e:
                    raise MetadataResolutionError(item.key, e) from e
            return results

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.aresolve(original, new))

        with ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(asyncio.run, self.aresolve(original, new)).result()


def _cancel(tasks: Mapping[asyncio.Task, str]) -> None:
    for task in tasks:
        task.cancel()


__all__ = [
    "FieldExtractor",
    "SyncExtractor",
    "AsyncExtractor",
    "Extractor",
    "MetadataField",
    "metadata_field",
    "parse_metadata",
    "MetadataResolver",
]
