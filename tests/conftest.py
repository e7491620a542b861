"""测试公共 fixtures

提供内存数据库、独立的存储注册表以及启用了历史记录的测试模型。
"""

import pytest
from sqlalchemy import Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from yhistory.store import HistoryStoreRegistry


@pytest.fixture(scope="function")
def memory_engine():
    """创建内存数据库引擎

    使用 StaticPool 确保所有操作使用同一个连接，
    避免 SQLite 内存数据库不同连接看不到数据的问题。
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def registry():
    """每个测试独立的存储注册表"""
    _registry = HistoryStoreRegistry()
    yield _registry
    _registry.clear()


@pytest.fixture
def base():
    """每个测试独立的声明式基类"""
    class Base(DeclarativeBase):
        pass

    return Base


@pytest.fixture
def tracked(registry):
    """为模型启用历史记录，测试结束时移除事件监听

    使用示例:
        Post = tracked(PostModel, diffOnly=True)
    """
    from yhistory.orm import track_history

    plugins = []

    def _track(model, **options):
        track_history(model, registry=registry, **options)
        plugins.append(model.__history_plugin__)
        return model

    yield _track

    for plugin in plugins:
        plugin.detach()


@pytest.fixture
def post_model(base):
    """未挂载历史记录的文章模型"""
    class Post(base):
        __tablename__ = "posts"

        id: Mapped[int] = mapped_column(Integer, primary_key=True)
        title: Mapped[str] = mapped_column(String(100))
        message: Mapped[str] = mapped_column(String(255), nullable=True)

    return Post


@pytest.fixture
def make_session(memory_engine, base):
    """建表并返回会话工厂"""
    def _make_session():
        base.metadata.create_all(bind=memory_engine)
        return sessionmaker(bind=memory_engine, autoflush=False)()

    return _make_session
