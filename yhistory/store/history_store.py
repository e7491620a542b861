"""历史集合存储

每个历史集合对应一张 SQLAlchemy 表，只追加写入，不存在更新路径。

表结构:
    id              自增主键（插入顺序即审计顺序）
    date            记录时间
    operation       insert / update / remove
    document        文档快照 (JSON)
    diff            差异 (JSON)
    additionalFields 附加上下文 (JSON)
    documentId      文档标识
    collectionName  源集合名
    modifiedBy      操作者（配置了操作者追踪时）
    <metadata key>  每个元数据字段一列
"""

import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Union

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Engine,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    delete,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..config import HistorySettings, get_settings
from ..core.options import HistoryOptions
from ..core.record import RECORD_FIELDS, HistoryRecord
from ..exceptions import ConfigurationError, StoreError
from ..log import get_logger

logger = get_logger("yhistory.store")


def build_index(table_name: str, spec: Any, position: int) -> "Union[Index, _IndexSpec]":
    """把索引定义转换为 SQLAlchemy Index

    支持的索引定义:
        - Index 实例：原样使用
        - "documentId"：单列索引
        - ["documentId", "date"]：复合索引
        - {"documentId": 1, "date": -1}：字段 -> 方向（-1 为降序）
        - {"name": "...", "columns": [...], "unique": True}
    """
    if isinstance(spec, Index):
        return spec

    name = None
    unique = False
    if isinstance(spec, str):
        columns = [spec]
    elif isinstance(spec, Mapping) and "columns" in spec:
        columns = list(spec["columns"])
        name = spec.get("name")
        unique = bool(spec.get("unique", False))
    elif isinstance(spec, Mapping):
        columns = [(key, direction) for key, direction in spec.items()]
    elif isinstance(spec, (list, tuple)):
        columns = list(spec)
    else:
        raise ConfigurationError(f"无法识别的索引定义: {spec!r}")

    if not columns:
        raise ConfigurationError(f"索引定义没有字段: {spec!r}")
    return _IndexSpec(name or f"ix_{table_name}_{position}", columns, unique)


class _IndexSpec:
    """延迟到表创建后再绑定列的索引定义"""

    def __init__(self, name: str, columns: list, unique: bool):
        self.name = name
        self.columns = columns
        self.unique = unique

    def bind(self, table: Table) -> Index:
        expressions = []
        for item in self.columns:
            key, direction = item if isinstance(item, tuple) else (item, 1)
            if key not in table.c:
                raise ConfigurationError(f"索引字段 '{key}' 不存在于历史表 '{table.name}'")
            column = table.c[key]
            expressions.append(column.desc() if direction == -1 else column)
        return Index(self.name, *expressions, unique=self.unique)


class HistoryStore:
    """历史集合存储句柄

    使用示例:
        store = HistoryStore("posts_history", options, metadata=MetaData())
        store.save(record, connection)
        store.find(engine, document_id="1")
    """

    def __init__(
        self,
        name: str,
        options: Optional[HistoryOptions] = None,
        metadata: Optional[MetaData] = None,
        settings: Optional[HistorySettings] = None,
    ):
        self.name = name
        self.options = options or HistoryOptions()
        self.settings = settings or get_settings()
        self.metadata = metadata if metadata is not None else MetaData()
        self.table = self._build_table()
        self._table_lock = threading.Lock()
        self._table_ready = False

    def _build_table(self) -> Table:
        if self.name in self.metadata.tables:
            raise ConfigurationError(f"历史表 '{self.name}' 已在 MetaData 中注册")

        columns = [
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("date", DateTime(timezone=True), nullable=False),
            Column("operation", String(16), nullable=False),
            Column("document", JSON, nullable=False),
            Column("diff", JSON),
            Column("additionalFields", JSON),
            Column("documentId", String(self.settings.document_id_max_length), index=True),
            Column("collectionName", String(255)),
        ]
        if self.options.modified_by is not None:
            columns.append(Column("modifiedBy", self.options.modified_by.sql_type()))

        for item in self.options.metadata:
            if item.key in RECORD_FIELDS or item.key == "id":
                raise ConfigurationError(f"元数据键名 '{item.key}' 与历史记录字段冲突")
            columns.append(Column(item.key, item.sql_type()))

        specs = [build_index(self.name, spec, position) for position, spec in enumerate(self.options.indexes)]
        # Index 实例在建表时直接传入，其余定义等列创建后再绑定
        table = Table(self.name, self.metadata, *columns, *[s for s in specs if isinstance(s, Index)])
        for spec in specs:
            if isinstance(spec, _IndexSpec):
                spec.bind(table)
        return table

    def _resolve_bind(self, bind: Any) -> Any:
        resolved = self.options.history_bind if self.options.history_bind is not None else bind
        if resolved is None:
            raise StoreError(self.name, ValueError("没有可用的数据库连接"))
        return resolved

    @contextmanager
    def _begin(self, bind: Any) -> Iterator[Connection]:
        """Engine 开启独立事务；Connection 直接使用，由调用方的事务控制提交"""
        if isinstance(bind, Engine):
            with bind.begin() as connection:
                yield connection
        else:
            yield bind

    def _ensure_table(self, connection: Connection) -> None:
        if self._table_ready or not self.settings.auto_create_tables:
            return
        with self._table_lock:
            if self._table_ready:
                return
            self.table.create(connection, checkfirst=True)
            # 建表随所在事务提交后才生效，事务回滚时下次写入重新检查
            if not event.contains(connection, "commit", self._mark_table_ready):
                event.listen(connection, "commit", self._mark_table_ready)

    def _mark_table_ready(self, connection: Connection) -> None:
        if not self._table_ready:
            self._table_ready = True
            logger.debug(f"历史表已就绪: {self.name}")

    def create_table(self, bind: Any = None) -> None:
        """创建历史表（已存在时跳过）"""
        bind = self._resolve_bind(bind)
        try:
            with self._begin(bind) as connection:
                self.table.create(connection, checkfirst=True)
        except SQLAlchemyError as e:
            logger.error(f"创建历史表失败: {self.name}, {e}")
            raise StoreError(self.name, e, action="建表") from e
        self._table_ready = True

    def save(self, record: HistoryRecord, connection: Any = None) -> None:
        """追加一条历史记录

        Args:
            record: 历史记录
            connection: 触发变更的连接，配置了 history_bind 时忽略

        Raises:
            StoreError: 写入失败
        """
        bind = self._resolve_bind(connection)
        values = {k: v for k, v in record.to_document().items() if k in self.table.c}
        try:
            with self._begin(bind) as conn:
                self._ensure_table(conn)
                conn.execute(self.table.insert().values(**values))
        except SQLAlchemyError as e:
            logger.error(f"保存历史记录失败: {self.name}, {e}")
            raise StoreError(self.name, e) from e

    def _filtered(self, statement, document_id: Optional[str]):
        if document_id is not None:
            statement = statement.where(self.table.c.documentId == str(document_id))
        return statement

    def find(self, bind: Any = None, document_id: Optional[str] = None, limit: Optional[int] = None) -> List[HistoryRecord]:
        """按插入顺序查询历史记录

        Args:
            bind: Engine 或 Connection
            document_id: 只返回该文档的记录
            limit: 最多返回的条数
        """
        bind = self._resolve_bind(bind)
        statement = self._filtered(select(self.table), document_id).order_by(self.table.c.id)
        if limit is not None:
            statement = statement.limit(limit)
        try:
            with self._begin(bind) as connection:
                rows = connection.execute(statement).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(self.name, e, action="查询") from e
        return [HistoryRecord.from_row(row) for row in rows]

    def count(self, bind: Any = None, document_id: Optional[str] = None) -> int:
        """统计历史记录数量"""
        bind = self._resolve_bind(bind)
        statement = self._filtered(select(func.count()).select_from(self.table), document_id)
        try:
            with self._begin(bind) as connection:
                return connection.execute(statement).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(self.name, e, action="查询") from e

    def clear_all(self, bind: Any = None) -> None:
        """删除历史集合中的全部记录，仅用于维护操作"""
        bind = self._resolve_bind(bind)
        try:
            with self._begin(bind) as connection:
                connection.execute(delete(self.table))
        except SQLAlchemyError as e:
            logger.error(f"清空历史记录失败: {self.name}, {e}")
            raise StoreError(self.name, e, action="清空") from e
        logger.info(f"已清空历史集合: {self.name}")

    def __repr__(self) -> str:
        return f"HistoryStore(name={self.name!r})"


__all__ = [
    "HistoryStore",
    "build_index",
]
