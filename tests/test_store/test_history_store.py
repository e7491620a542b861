"""历史存储测试

测试覆盖：
- 首次写入自动建表，建表事务回滚后重新建表
- 只追加写入，按插入顺序查询
- 元数据列与 modifiedBy 列
- 清空历史
- 底层失败包装为 StoreError
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import Index, String, create_engine, inspect
from sqlalchemy.pool import StaticPool

from yhistory.config import HistorySettings
from yhistory.core.options import HistoryOptions
from yhistory.core.record import HistoryRecord, Operation
from yhistory.exceptions import ConfigurationError, StoreError
from yhistory.store import HistoryStore


def make_record(document_id="1", operation=Operation.INSERT, **kwargs):
    return HistoryRecord(
        date=datetime.now(timezone.utc),
        operation=operation,
        document={"id": document_id},
        diff={"id": document_id},
        document_id=document_id,
        **kwargs,
    )


class TestHistoryStore:
    """HistoryStore 测试"""

    def test_table_created_on_first_save(self, memory_engine):
        """测试：首次保存时自动建表"""
        store = HistoryStore("posts_history")

        store.save(make_record(), memory_engine)

        assert inspect(memory_engine).has_table("posts_history")
        assert store.count(memory_engine) == 1

    def test_table_creation_rolled_back(self, memory_engine):
        """测试：建表所在事务回滚后再次写入时重新建表"""
        store = HistoryStore("posts_history")

        with memory_engine.connect() as connection:
            connection.exec_driver_sql("CREATE TABLE marker (id INTEGER)")
            connection.commit()
            connection.exec_driver_sql("INSERT INTO marker VALUES (1)")
            store.save(make_record(), connection)
            connection.rollback()

        assert not inspect(memory_engine).has_table("posts_history")

        store.save(make_record(), memory_engine)

        assert store.count(memory_engine) == 1

    def test_no_auto_create(self, memory_engine):
        """测试：关闭自动建表时写入失败"""
        store = HistoryStore("posts_history", settings=HistorySettings(auto_create_tables=False))

        with pytest.raises(StoreError) as exc_info:
            store.save(make_record(), memory_engine)

        assert exc_info.value.collection_name == "posts_history"
        assert exc_info.value.__cause__ is exc_info.value.original_error

    def test_find_in_insertion_order(self, memory_engine):
        """测试：按插入顺序返回记录"""
        store = HistoryStore("posts_history")
        store.save(make_record("1", Operation.INSERT), memory_engine)
        store.save(make_record("2", Operation.INSERT), memory_engine)
        store.save(make_record("1", Operation.UPDATE), memory_engine)

        records = store.find(memory_engine, document_id="1")

        assert [r.operation for r in records] == [Operation.INSERT, Operation.UPDATE]
        assert store.count(memory_engine) == 3
        assert len(store.find(memory_engine, limit=2)) == 2

    def test_record_round_trip(self, memory_engine):
        """测试：保存后读取的字段与原记录一致"""
        store = HistoryStore("posts_history")
        record = make_record(additional_fields={"q": {"in": [1]}}, collection_name="posts")

        store.save(record, memory_engine)
        loaded = store.find(memory_engine)[0]

        assert loaded.document == record.document
        assert loaded.additional_fields == {"q": {"in": [1]}}
        assert loaded.collection_name == "posts"
        assert loaded.modified_by is None

    def test_metadata_and_modified_by_columns(self, memory_engine):
        """测试：元数据与操作者写入独立列"""
        options = HistoryOptions.from_mapping(
            metadata=[{"key": "title", "value": "title", "schema": String(100)}],
            modifiedBy={"contextPath": "user"},
        )
        store = HistoryStore("posts_history", options)

        store.save(make_record(modified_by={"id": 1}, metadata={"title": "A"}), memory_engine)
        loaded = store.find(memory_engine)[0]

        assert loaded.modified_by == {"id": 1}
        assert loaded.metadata == {"title": "A"}

    def test_metadata_key_conflict(self):
        """测试：元数据键名与记录字段冲突时报错"""
        options = HistoryOptions.from_mapping(metadata=[{"key": "diff", "value": "x"}])

        with pytest.raises(ConfigurationError):
            HistoryStore("posts_history", options)

    def test_indexes(self, memory_engine):
        """测试：索引定义转交给历史表"""
        options = HistoryOptions.from_mapping(
            indexes=[
                "operation",
                {"collectionName": 1, "date": -1},
                {"name": "ix_unique_doc_date", "columns": ["documentId", "date"], "unique": False},
            ]
        )
        store = HistoryStore("posts_history", options)
        store.create_table(memory_engine)

        names = {index["name"] for index in inspect(memory_engine).get_indexes("posts_history")}

        assert {"ix_posts_history_0", "ix_posts_history_1", "ix_unique_doc_date"} <= names

    def test_index_instance(self, memory_engine):
        """测试：直接传入 Index 实例"""
        options = HistoryOptions.from_mapping(indexes=[Index("ix_custom_op", "operation")])
        store = HistoryStore("posts_history", options)
        store.create_table(memory_engine)

        names = {index["name"] for index in inspect(memory_engine).get_indexes("posts_history")}

        assert "ix_custom_op" in names

    def test_unknown_index_column(self):
        """测试：索引字段不存在时报错"""
        options = HistoryOptions.from_mapping(indexes=["missing"])

        with pytest.raises(ConfigurationError):
            HistoryStore("posts_history", options)

    def test_clear_all(self, memory_engine):
        """测试：清空全部记录"""
        store = HistoryStore("posts_history")
        store.save(make_record("1"), memory_engine)
        store.save(make_record("2"), memory_engine)

        store.clear_all(memory_engine)

        assert store.count(memory_engine) == 0

    def test_history_bind_used(self, memory_engine):
        """测试：配置了独立连接时写入独立数据库"""
        other = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        store = HistoryStore("posts_history", HistoryOptions(history_bind=other))

        store.save(make_record(), memory_engine)

        assert store.count() == 1
        assert not inspect(memory_engine).has_table("posts_history")
        other.dispose()

    def test_missing_bind_raises(self):
        """测试：没有可用连接时报错"""
        with pytest.raises(StoreError):
            HistoryStore("posts_history").save(make_record())
