"""挂载选项与历史目标

HistoryOptions 是挂载到模型时的配置，HistoryTarget 是绑定到具体模型后的
不可变配置（集合名、历史集合名、标识字段等都已确定）。
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional, Tuple

from ..config import HistorySettings, get_settings
from ..exceptions import ConfigurationError
from .actor import ModifiedByConfig
from .metadata import MetadataField, parse_metadata


# 驼峰选项名 -> 字段名
_OPTION_ALIASES = {
    "customCollectionName": "custom_collection_name",
    "includeCollectionName": "include_collection_name",
    "diffOnly": "diff_only",
    "customDiffAlgo": "custom_diff_algo",
    "modifiedBy": "modified_by",
    "historyConnection": "history_bind",
    "history_connection": "history_bind",
    "timestampField": "timestamp_field",
    "collectionSuffix": "collection_suffix",
}


@dataclass(frozen=True)
class HistoryOptions:
    """历史记录挂载选项

    Attributes:
        custom_collection_name: 自定义历史集合名，替代 "<集合名><后缀>"
        include_collection_name: 是否在记录中写入 collectionName
        diff_only: 更新操作是否只记录变化的字段
        custom_diff_algo: 自定义逐字段差异算法 (key, new, original) -> value | None
        metadata: 元数据字段
        modified_by: 操作者追踪配置，None 表示不追踪
        indexes: 转交给存储层的索引定义
        history_bind: 写入历史使用的独立 Engine/Connection
        timestamp_field: 差异计算时忽略的时间戳字段，None 表示使用全局配置
        collection_suffix: 历史集合名后缀，None 表示使用全局配置
    """
    custom_collection_name: Optional[str] = None
    include_collection_name: bool = False
    diff_only: bool = False
    custom_diff_algo: Optional[Callable[[str, Any, Any], Any]] = None
    metadata: Tuple[MetadataField, ...] = field(default_factory=tuple)
    modified_by: Optional[ModifiedByConfig] = None
    indexes: Tuple[Any, ...] = field(default_factory=tuple)
    history_bind: Any = None
    timestamp_field: Optional[str] = None
    collection_suffix: Optional[str] = None

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "HistoryOptions":
        """从配置字典创建选项

        同时接受驼峰（diffOnly）与下划线（diff_only）两种选项名。

        Raises:
            ConfigurationError: 出现未知选项或选项值结构错误
        """
        raw = dict(options or {})
        raw.update(kwargs)

        known = set(cls.__dataclass_fields__)
        values = {}
        for name, value in raw.items():
            attr = _OPTION_ALIASES.get(name, name)
            if attr not in known:
                raise ConfigurationError(f"未知的历史记录选项: {name}")
            if attr in values:
                raise ConfigurationError(f"历史记录选项重复: {name}")
            values[attr] = value

        if "metadata" in values:
            values["metadata"] = parse_metadata(values["metadata"])

        modified_by = values.get("modified_by")
        if modified_by is True:
            values["modified_by"] = ModifiedByConfig()
        elif modified_by is False:
            values["modified_by"] = None
        elif isinstance(modified_by, Mapping):
            values["modified_by"] = ModifiedByConfig.from_mapping(modified_by)
        elif modified_by is not None and not isinstance(modified_by, ModifiedByConfig):
            raise ConfigurationError(f"modifiedBy 配置无效: {modified_by!r}")

        if "indexes" in values:
            values["indexes"] = tuple(values["indexes"] or ())

        custom_diff_algo = values.get("custom_diff_algo")
        if custom_diff_algo is not None and not callable(custom_diff_algo):
            raise ConfigurationError("customDiffAlgo 必须是可调用对象")

        return cls(**values)

    def merged(self, **changes: Any) -> "HistoryOptions":
        return replace(self, **changes)


def history_collection_name(collection: str, custom: Optional[str] = None, suffix: str = "_history") -> str:
    """历史集合命名策略：优先使用自定义名称，否则为 "<集合名><后缀>"

    >>> history_collection_name("posts")
    'posts_history'
    """
    if custom:
        return custom
    return f"{collection}{suffix}"


@dataclass(frozen=True)
class HistoryTarget:
    """绑定到某个模型的历史配置，创建后不可变"""
    collection_name: str
    history_collection_name: str
    options: HistoryOptions
    id_key: str = "_id"
    version_key: str = "__v"
    timestamp_field: str = "updated_at"

    @classmethod
    def create(
        cls,
        collection_name: str,
        options: Optional[HistoryOptions] = None,
        id_key: str = "_id",
        version_key: Optional[str] = None,
        settings: Optional[HistorySettings] = None,
    ) -> "HistoryTarget":
        """按全局配置补全选项的默认值并创建目标"""
        options = options or HistoryOptions()
        settings = settings or get_settings()
        suffix = options.collection_suffix if options.collection_suffix is not None else settings.collection_suffix
        return cls(
            collection_name=collection_name,
            history_collection_name=history_collection_name(
                collection_name, options.custom_collection_name, suffix
            ),
            options=options,
            id_key=id_key,
            version_key=version_key or settings.version_key,
            timestamp_field=options.timestamp_field or settings.timestamp_field,
        )


__all__ = [
    "HistoryOptions",
    "HistoryTarget",
    "history_collection_name",
]
