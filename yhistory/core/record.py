"""历史记录与记录构建器

HistoryRecord 是持久化的最小单元，创建后不可变。持久化字段名
（documentId、additionalFields 等）是下游直接读取历史集合时依赖的兼容面。
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..log import get_logger
from .actor import ActorResolver
from .options import HistoryTarget
from .sanitizer import sanitize_mapping, to_plain

logger = get_logger("yhistory.record")


class Operation(str, Enum):
    """触发历史记录的操作类型"""
    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"


# 持久化布局中的固定字段，其余列均为元数据
RECORD_FIELDS = (
    "date",
    "operation",
    "document",
    "diff",
    "additionalFields",
    "documentId",
    "collectionName",
    "modifiedBy",
)


class HistoryRecord(BaseModel):
    """一条历史记录

    使用示例:
        record.to_document()
        # -> {"date": ..., "operation": "update", "document": {...},
        #     "diff": {...}, "documentId": "1"}
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=False)

    date: datetime
    operation: Operation
    document: Dict[str, Any] = Field(default_factory=dict)
    diff: Optional[Dict[str, Any]] = None
    additional_fields: Optional[Dict[str, Any]] = Field(default=None, alias="additionalFields")
    document_id: Optional[str] = Field(default=None, alias="documentId")
    collection_name: Optional[str] = Field(default=None, alias="collectionName")
    modified_by: Any = Field(default=None, alias="modifiedBy")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        """返回持久化布局：使用别名，省略不存在的字段，元数据平铺到顶层"""
        data: Dict[str, Any] = {
            "date": self.date,
            "operation": self.operation.value,
            "document": self.document,
        }
        optional = {
            "diff": self.diff,
            "additionalFields": self.additional_fields,
            "documentId": self.document_id,
            "collectionName": self.collection_name,
            "modifiedBy": self.modified_by,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        data.update(self.metadata)
        return data

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "HistoryRecord":
        """从历史表的一行重建记录"""
        values = {key: row.get(key) for key in RECORD_FIELDS}
        metadata = {k: v for k, v in row.items() if k not in RECORD_FIELDS and k != "id"}
        values["document"] = values["document"] or {}
        return cls.model_validate({**values, "metadata": metadata})


def resolve_document_id(document: Mapping[str, Any], diff: Optional[Mapping[str, Any]], id_key: str) -> Optional[str]:
    """解析 documentId：优先 document[id_key]，其次 diff[id_key]

    复合值（如查询片段 {"in": [...]}）序列化为紧凑 JSON，
    标量使用 str()；都不存在时返回 None。
    """
    value = document.get(id_key)
    if value is None and diff:
        value = diff.get(id_key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


class HistoryRecordBuilder:
    """历史记录构建器

    使用示例:
        builder = HistoryRecordBuilder(target)
        record = builder.build({}, {"_id": 1, "title": "A"}, Operation.INSERT)
    """

    def __init__(self, target: HistoryTarget):
        self.target = target
        modified_by = target.options.modified_by
        self.actor_resolver = ActorResolver(modified_by) if modified_by else None
        self._json_metadata_keys = {
            item.key for item in target.options.metadata if item.column_type is None
        }

    def build(
        self,
        original: Optional[Mapping[str, Any]],
        changed: Optional[Mapping[str, Any]],
        operation: Operation,
        extra_fields: Optional[Mapping[str, Any]] = None,
        context: Optional[Mapping[str, Any]] = None,
        actor_fallback: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> HistoryRecord:
        """构建历史记录

        Args:
            original: 写入 document 的文档（插入时为新状态）
            changed: 写入 diff 的文档
            operation: 操作类型
            extra_fields: 调用方提供的附加上下文
            context: 当前操作的 HistoryContext
            actor_fallback: 读取阶段捕获的操作者
            metadata: 已解析的元数据

        Raises:
            SerializationError: 文档无法序列化
        """
        version_key = self.target.version_key
        document = sanitize_mapping(original, version_key=version_key)
        diff = sanitize_mapping(changed, version_key=version_key)

        values: Dict[str, Any] = {
            "date": datetime.now(timezone.utc),
            "operation": Operation(operation),
            "document": document,
            "diff": diff,
        }

        if self.target.options.include_collection_name:
            values["collection_name"] = self.target.collection_name

        values["document_id"] = resolve_document_id(document, diff, self.target.id_key)

        if self.actor_resolver is not None:
            actor = self.actor_resolver.resolve(context, fallback=actor_fallback)
            if actor is not None:
                values["modified_by"] = to_plain(actor)

        if extra_fields:
            values["additional_fields"] = to_plain({k: extra_fields[k] for k in extra_fields.keys()})

        if metadata:
            values["metadata"] = {
                key: to_plain(value) if key in self._json_metadata_keys else value
                for key, value in metadata.items()
            }

        return HistoryRecord(**values)


__all__ = [
    "Operation",
    "RECORD_FIELDS",
    "HistoryRecord",
    "HistoryRecordBuilder",
    "resolve_document_id",
]
