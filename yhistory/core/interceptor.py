"""变更拦截器

把一次生命周期事件（插入/更新/删除）转换成一条历史记录并保存：

    事件 -> 确定 (original, new) -> 差异或完整副本 -> 构建记录 -> 元数据 -> 保存

输入有两种形态：
- DocumentState: 已加载的文档实例（当前状态 + 可选的加载时快照）
- PartialPatch: 基于过滤条件的局部更新（过滤条件 + 补丁 + 可选快照）

任何一步失败都会原样抛出，由调用方让触发它的变更一起失败。
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..log import get_logger
from ..store.registry import HistoryStoreRegistry, default_registry
from .diff import compute_diff
from .metadata import MetadataResolver
from .options import HistoryTarget
from .record import HistoryRecord, HistoryRecordBuilder, Operation

logger = get_logger("yhistory.interceptor")


@dataclass(frozen=True)
class DocumentState:
    """已加载文档的状态

    Attributes:
        current: 文档当前（变更后）的字段值
        original: 加载时捕获的快照，没有时为 None
    """
    current: Mapping[str, Any]
    original: Optional[Mapping[str, Any]] = None


def query_as_document(filters: Mapping[str, Any]) -> Dict[str, Any]:
    """把过滤条件当作文档使用

    列表值表示"属于其中之一"，转换为 {"$in": [...]}；其他值原样保留。
    """
    document = {}
    for key, value in filters.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            document[key] = {"$in": list(value)}
        else:
            document[key] = value
    return document


@dataclass(frozen=True)
class PartialPatch:
    """基于过滤条件的局部更新

    Attributes:
        filter: 过滤条件（字段 -> 值，列表表示多个候选值）
        patch: 要设置的字段
        snapshot: 目标文档在更新前的快照（目标已加载时提供）
    """
    filter: Mapping[str, Any]
    patch: Mapping[str, Any]
    snapshot: Optional[Mapping[str, Any]] = None

    def original(self) -> Dict[str, Any]:
        if self.snapshot is not None:
            return dict(self.snapshot)
        return query_as_document(self.filter)

    def new(self) -> Dict[str, Any]:
        merged = self.original()
        merged.update(self.patch)
        return merged


MutationState = Union[DocumentState, PartialPatch, Mapping[str, Any]]


class MutationInterceptor:
    """变更拦截器

    使用示例:
        interceptor = MutationInterceptor(target, registry)
        interceptor.on_update(DocumentState(current, original), connection)
    """

    def __init__(self, target: HistoryTarget, registry: Optional[HistoryStoreRegistry] = None):
        self.target = target
        self.registry = registry if registry is not None else default_registry
        self.builder = HistoryRecordBuilder(target)
        self.metadata_resolver = MetadataResolver(target.options.metadata)

    @property
    def store(self):
        return self.registry.get_store(self.target.history_collection_name, self.target.options)

    def normalize(self, operation: Operation, state: MutationState) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """把输入形态转换为 (original, new)"""
        if isinstance(state, PartialPatch):
            original, new = state.original(), state.new()
        elif isinstance(state, DocumentState):
            original, new = dict(state.original or {}), dict(state.current)
        else:
            original, new = {}, dict(state or {})

        if operation == Operation.INSERT:
            return {}, new
        if operation == Operation.REMOVE:
            # 删除没有变更后的状态，前后都是删除前的完整快照
            return new, new
        return original, new

    def intercept(
        self,
        operation: Operation,
        state: MutationState,
        connection: Any = None,
        extra_fields: Optional[Mapping[str, Any]] = None,
        context: Optional[Mapping[str, Any]] = None,
        actor_fallback: Any = None,
    ) -> HistoryRecord:
        """记录一次变更

        Args:
            operation: 操作类型
            state: DocumentState / PartialPatch / 文档映射
            connection: 触发变更所在的数据库连接
            extra_fields: 调用方附加上下文（如原始过滤条件）
            context: 当前操作的 HistoryContext
            actor_fallback: 读取阶段捕获的操作者

        Returns:
            已保存的历史记录

        Raises:
            SerializationError / MetadataResolutionError / StoreError
        """
        operation = Operation(operation)
        original, new = self.normalize(operation, state)

        if operation == Operation.INSERT:
            document, diff = new, new
        elif operation == Operation.UPDATE:
            document = original
            if self.target.options.diff_only:
                diff = compute_diff(
                    original,
                    new,
                    id_key=self.target.id_key,
                    diff_algo=self.target.options.custom_diff_algo,
                    timestamp_field=self.target.timestamp_field,
                )
            else:
                diff = new
        else:
            document, diff = original, original

        metadata = self.metadata_resolver.resolve(original, new) if self.metadata_resolver else None

        record = self.builder.build(
            document,
            diff,
            operation,
            extra_fields=extra_fields,
            context=context,
            actor_fallback=actor_fallback,
            metadata=metadata,
        )
        self.store.save(record, connection)
        logger.debug(
            f"已记录历史: {self.target.collection_name} {operation.value} "
            f"documentId={record.document_id}"
        )
        return record

    def on_insert(self, state: MutationState, connection: Any = None, **kwargs: Any) -> HistoryRecord:
        return self.intercept(Operation.INSERT, state, connection, **kwargs)

    def on_update(self, state: MutationState, connection: Any = None, **kwargs: Any) -> HistoryRecord:
        return self.intercept(Operation.UPDATE, state, connection, **kwargs)

    def on_remove(self, state: MutationState, connection: Any = None, **kwargs: Any) -> HistoryRecord:
        return self.intercept(Operation.REMOVE, state, connection, **kwargs)


__all__ = [
    "DocumentState",
    "PartialPatch",
    "MutationState",
    "query_as_document",
    "MutationInterceptor",
]
