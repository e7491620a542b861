"""SQLAlchemy 历史记录插件

把变更拦截器挂载到 SQLAlchemy 模型的生命周期事件上：

    load / refresh      -> 捕获快照（仅差异模式）和操作者回退值
    before_flush        -> 加载待更新/删除实例的未加载属性，保存删除前快照
    after_insert        -> 记录 insert
    after_update        -> 记录 update（没有列变更时跳过）
    after_delete        -> 记录 remove

历史记录通过 flush 所用的同一个 Connection 写入，与触发它的变更处于
同一事务：保存失败会中止 flush，Session 回滚后把异常抛给调用方。

使用示例:
    from yhistory.orm import track_history, set_actor

    @track_history(diffOnly=True, modifiedBy={"contextPath": "user", "blacklist": ["password"]})
    class Post(Base):
        __tablename__ = "posts"
        id: Mapped[int] = mapped_column(primary_key=True)
        title: Mapped[str] = mapped_column(String(100))

    set_actor(session, current_user)
    session.add(Post(title="A"))
    session.commit()

    Post.history_model().find(engine)
"""

from typing import Any, Callable, Mapping, Optional, Type, TypeVar, Union

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, object_session

from ..config import HistorySettings, get_settings
from ..core.actor import ActorResolver
from ..core.interceptor import DocumentState, MutationInterceptor
from ..core.options import HistoryOptions, HistoryTarget
from ..exceptions import ConfigurationError
from ..log import get_logger
from ..store.registry import HistoryStoreRegistry, default_registry
from .context import get_history_context
from .snapshot import (
    ACTOR_KEY,
    REMOVED_KEY,
    SNAPSHOT_KEY,
    capture_snapshot,
    current_document,
    instance_document,
    has_column_changes,
    load_unloaded,
    original_document,
)

logger = get_logger("yhistory.orm")

T = TypeVar("T")


def resolve_id_key(mapper) -> str:
    """模型标识字段（第一个主键列对应的属性名）"""
    if not mapper.primary_key:
        raise ConfigurationError(f"模型 {mapper.class_.__name__} 没有主键，无法记录历史")
    return mapper.get_property_by_column(mapper.primary_key[0]).key


def resolve_version_key(mapper, default: str) -> str:
    """存储层版本号字段：配置了 version_id_col 时使用对应属性名"""
    if mapper.version_id_col is not None:
        return mapper.get_property_by_column(mapper.version_id_col).key
    return default


class HistoryPlugin:
    """历史记录插件

    使用示例:
        plugin = HistoryPlugin({"diffOnly": True}, registry=registry)
        plugin.attach(Post)
    """

    def __init__(
        self,
        options: Union[HistoryOptions, Mapping[str, Any], None] = None,
        registry: Optional[HistoryStoreRegistry] = None,
        settings: Optional[HistorySettings] = None,
        **kwargs: Any,
    ):
        if isinstance(options, HistoryOptions):
            if kwargs:
                options = HistoryOptions.from_mapping(
                    {k: v for k, v in options.__dict__.items()}, **kwargs
                )
        else:
            options = HistoryOptions.from_mapping(options, **kwargs)
        self.options = options
        self.registry = registry if registry is not None else default_registry
        self.settings = settings
        self.model = None
        self.target: Optional[HistoryTarget] = None
        self.interceptor: Optional[MutationInterceptor] = None
        self.actor_resolver: Optional[ActorResolver] = None

    def attach(self, model: Type[T]) -> Type[T]:
        """挂载到模型

        Raises:
            ConfigurationError: 模型未映射、没有主键或重复挂载
        """
        if "__history_target__" in model.__dict__:
            raise ConfigurationError(f"模型 {model.__name__} 已挂载历史记录")

        mapper = inspect(model, raiseerr=False)
        if mapper is None:
            raise ConfigurationError(f"{model!r} 不是 SQLAlchemy 映射模型")

        settings = self.settings or get_settings()
        self.model = model
        self.target = HistoryTarget.create(
            collection_name=mapper.local_table.name,
            options=self.options,
            id_key=resolve_id_key(mapper),
            version_key=resolve_version_key(mapper, settings.version_key),
            settings=settings,
        )
        self.interceptor = MutationInterceptor(self.target, self.registry)
        if self.options.modified_by is not None:
            self.actor_resolver = ActorResolver(self.options.modified_by)

        # 挂载时即注册存储句柄，建表可以通过 registry.create_all() 统一完成
        store = self.interceptor.store

        event.listen(model, "load", self._on_load, propagate=True)
        event.listen(model, "refresh", self._on_refresh, propagate=True)
        event.listen(model, "after_insert", self._after_insert, propagate=True)
        event.listen(model, "after_update", self._after_update, propagate=True)
        event.listen(model, "after_delete", self._after_delete, propagate=True)
        event.listen(Session, "before_flush", self._before_flush)

        model.__history_target__ = self.target
        model.__history_plugin__ = self
        model.history_model = staticmethod(lambda: store)
        model.clear_history = staticmethod(lambda bind=None: store.clear_all(bind))

        logger.debug(f"已挂载历史记录: {model.__name__} -> {self.target.history_collection_name}")
        return model

    def detach(self) -> None:
        """移除事件监听（测试中用于清理）"""
        if self.model is None:
            return
        for name, fn in (
            ("load", self._on_load),
            ("refresh", self._on_refresh),
            ("after_insert", self._after_insert),
            ("after_update", self._after_update),
            ("after_delete", self._after_delete),
        ):
            if event.contains(self.model, name, fn):
                event.remove(self.model, name, fn)
        if event.contains(Session, "before_flush", self._before_flush):
            event.remove(Session, "before_flush", self._before_flush)
        for attr in ("__history_target__", "__history_plugin__", "history_model", "clear_history"):
            if attr in self.model.__dict__:
                delattr(self.model, attr)
        self.model = None

    # ==================== 读取阶段 ====================

    def _capture_actor(self, target, session) -> None:
        if self.actor_resolver is None:
            return
        actor = self.actor_resolver.current(get_history_context(session))
        if actor is not None:
            inspect(target).info[ACTOR_KEY] = actor

    def _on_load(self, target, context) -> None:
        if self.options.diff_only:
            capture_snapshot(target)
        self._capture_actor(target, context.session)

    def _on_refresh(self, target, context, attrs) -> None:
        # ORM 批量 UPDATE 同步会话状态时 context 为 None
        session = context.session if context is not None else object_session(target)
        if self.options.diff_only:
            info = inspect(target).info
            snapshot = info.get(SNAPSHOT_KEY)
            if attrs is None or snapshot is None:
                capture_snapshot(target)
            else:
                # 只合并刷新的属性，保留其他属性的快照值
                current = instance_document(target)
                snapshot.update({k: current[k] for k in attrs if k in current})
        self._capture_actor(target, session)

    def _before_flush(self, session, flush_context, instances) -> None:
        for obj in list(session.dirty) + list(session.deleted):
            if not isinstance(obj, self.model):
                continue
            load_unloaded(obj)
        for obj in session.deleted:
            if isinstance(obj, self.model):
                inspect(obj).info[REMOVED_KEY] = instance_document(obj)

    # ==================== 写入阶段 ====================

    def _record_kwargs(self, target) -> dict:
        state = inspect(target)
        return {
            "context": get_history_context(state.session or object_session(target)),
            "actor_fallback": state.info.get(ACTOR_KEY),
        }

    def _after_insert(self, mapper, connection, target) -> None:
        document = current_document(target, connection)
        self.interceptor.on_insert(
            DocumentState(document),
            connection,
            **self._record_kwargs(target),
        )
        if self.options.diff_only:
            capture_snapshot(target, document)

    def _after_update(self, mapper, connection, target) -> None:
        if not has_column_changes(target):
            return
        document = current_document(target, connection)
        self.interceptor.on_update(
            DocumentState(document, original_document(target)),
            connection,
            **self._record_kwargs(target),
        )
        if self.options.diff_only:
            capture_snapshot(target, document)

    def _after_delete(self, mapper, connection, target) -> None:
        state = inspect(target)
        removed = state.info.pop(REMOVED_KEY, None)
        if removed is None:
            removed = instance_document(target)
        self.interceptor.on_remove(DocumentState(removed), connection, **self._record_kwargs(target))
        state.info.pop(SNAPSHOT_KEY, None)


def track_history(
    model: Optional[Type[T]] = None,
    *,
    registry: Optional[HistoryStoreRegistry] = None,
    settings: Optional[HistorySettings] = None,
    **options: Any,
) -> Union[Type[T], Callable[[Type[T]], Type[T]]]:
    """类装饰器：为模型启用历史记录

    使用示例:
        @track_history
        class Post(Base): ...

        @track_history(diffOnly=True, includeCollectionName=True)
        class Comment(Base): ...
    """
    def decorator(cls: Type[T]) -> Type[T]:
        return HistoryPlugin(options, registry=registry, settings=settings).attach(cls)

    if model is not None:
        return decorator(model)
    return decorator


__all__ = [
    "HistoryPlugin",
    "track_history",
    "resolve_id_key",
    "resolve_version_key",
]
