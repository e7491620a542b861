"""yhistory - 文档变更历史记录

在文档的插入、更新、删除时写入只追加的历史记录，包含变更前的状态、
差异以及操作者和元数据。

快速开始:
    from yhistory import track_history, set_actor

    @track_history(diffOnly=True)
    class Post(Base):
        __tablename__ = "posts"
        ...

    set_actor(session, current_user)
    session.add(post)
    session.commit()

    Post.history_model().find(engine, document_id=str(post.id))
"""

from .version import __version__, __author__, __description__

from .exceptions import (
    HistoryError,
    SerializationError,
    MetadataResolutionError,
    StoreError,
    ConfigurationError,
)

from .config import HistorySettings, LoggingSettings, get_settings, configure, load_yaml_config

from .log import get_logger, setup_logger, setup_history_logger

from .core import (
    DELETED,
    compute_diff,
    default_diff_algo,
    sanitize,
    HistoryContext,
    ModifiedByConfig,
    AsyncExtractor,
    FieldExtractor,
    SyncExtractor,
    MetadataField,
    MetadataResolver,
    metadata_field,
    HistoryOptions,
    HistoryTarget,
    history_collection_name,
    HistoryRecord,
    HistoryRecordBuilder,
    Operation,
    DocumentState,
    PartialPatch,
    MutationInterceptor,
)

from .store import HistoryStore, HistoryStoreRegistry, default_registry

from .orm import (
    HistoryPlugin,
    track_history,
    patch_documents,
    set_actor,
    set_history_context,
    get_history_context,
    clear_history_context,
    history_context,
)

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    # 异常
    "HistoryError",
    "SerializationError",
    "MetadataResolutionError",
    "StoreError",
    "ConfigurationError",
    # 配置
    "HistorySettings",
    "LoggingSettings",
    "get_settings",
    "configure",
    "load_yaml_config",
    # 日志
    "get_logger",
    "setup_logger",
    "setup_history_logger",
    # 核心
    "DELETED",
    "compute_diff",
    "default_diff_algo",
    "sanitize",
    "HistoryContext",
    "ModifiedByConfig",
    "AsyncExtractor",
    "FieldExtractor",
    "SyncExtractor",
    "MetadataField",
    "MetadataResolver",
    "metadata_field",
    "HistoryOptions",
    "HistoryTarget",
    "history_collection_name",
    "HistoryRecord",
    "HistoryRecordBuilder",
    "Operation",
    "DocumentState",
    "PartialPatch",
    "MutationInterceptor",
    # 存储
    "HistoryStore",
    "HistoryStoreRegistry",
    "default_registry",
    # SQLAlchemy 集成
    "HistoryPlugin",
    "track_history",
    "patch_documents",
    "set_actor",
    "set_history_context",
    "get_history_context",
    "clear_history_context",
    "history_context",
]
