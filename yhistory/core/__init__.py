"""差异与记录引擎

与具体数据库无关的核心逻辑：
- sanitizer: 文档清洗
- diff: 差异计算
- actor / metadata: 操作者与元数据解析
- options: 挂载选项与历史目标
- record: 历史记录与构建器
- interceptor: 变更拦截与保存编排
"""

from .sanitizer import sanitize, sanitize_mapping, to_plain
from .diff import DELETED, compute_diff, default_diff_algo, structural_diff
from .actor import ActorResolver, HistoryContext, ModifiedByConfig, normalize_actor
from .metadata import (
    AsyncExtractor,
    FieldExtractor,
    MetadataField,
    MetadataResolver,
    SyncExtractor,
    metadata_field,
)
from .options import HistoryOptions, HistoryTarget, history_collection_name
from .record import HistoryRecord, HistoryRecordBuilder, Operation, resolve_document_id
from .interceptor import DocumentState, MutationInterceptor, PartialPatch, query_as_document

__all__ = [
    "sanitize",
    "sanitize_mapping",
    "to_plain",
    "DELETED",
    "compute_diff",
    "default_diff_algo",
    "structural_diff",
    "ActorResolver",
    "HistoryContext",
    "ModifiedByConfig",
    "normalize_actor",
    "AsyncExtractor",
    "FieldExtractor",
    "MetadataField",
    "MetadataResolver",
    "SyncExtractor",
    "metadata_field",
    "HistoryOptions",
    "HistoryTarget",
    "history_collection_name",
    "HistoryRecord",
    "HistoryRecordBuilder",
    "Operation",
    "resolve_document_id",
    "DocumentState",
    "MutationInterceptor",
    "PartialPatch",
    "query_as_document",
]
