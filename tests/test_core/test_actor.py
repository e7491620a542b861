"""操作者解析测试"""

from pydantic import BaseModel as PydanticModel

from yhistory.core.actor import ActorResolver, HistoryContext, ModifiedByConfig, normalize_actor


class UserDTO(PydanticModel):
    id: int
    name: str
    password: str


class TestHistoryContext:
    """HistoryContext 测试"""

    def test_lookup_dotted_path(self):
        """测试：按点号路径读取"""
        context = HistoryContext(request={"user": {"id": 1}})

        assert context.lookup("request.user.id") == 1
        assert context.lookup("request.missing") is None

    def test_merged_returns_copy(self):
        """测试：merged 不修改原上下文"""
        context = HistoryContext(a=1)
        merged = context.merged(b=2)

        assert dict(context) == {"a": 1}
        assert dict(merged) == {"a": 1, "b": 2}


class TestNormalizeActor:
    """操作者规范化测试"""

    def test_mapping_copied(self):
        """测试：字典被复制"""
        actor = {"id": 1}
        result = normalize_actor(actor)
        result["id"] = 2

        assert actor == {"id": 1}

    def test_pydantic_model(self):
        """测试：Pydantic 模型转换为字典"""
        assert normalize_actor(UserDTO(id=1, name="tom", password="x")) == {
            "id": 1, "name": "tom", "password": "x"
        }

    def test_to_dict_object(self):
        """测试：带 to_dict() 的对象"""
        class User:
            def to_dict(self):
                return {"id": 3}

        assert normalize_actor(User()) == {"id": 3}

    def test_scalar(self):
        """测试：标量原样返回"""
        assert normalize_actor(5) == 5
        assert normalize_actor("admin") == "admin"


class TestActorResolver:
    """ActorResolver 测试"""

    def test_blacklist_applied_to_copy(self):
        """测试：黑名单字段只从副本中移除"""
        user = {"id": 1, "password": "secret"}
        resolver = ActorResolver(ModifiedByConfig(blacklist=("password",)))

        result = resolver.resolve(HistoryContext(user=user))

        assert result == {"id": 1}
        assert user == {"id": 1, "password": "secret"}

    def test_blacklist_on_pydantic_actor(self):
        """测试：Pydantic 操作者同样移除黑名单字段"""
        resolver = ActorResolver(ModifiedByConfig(blacklist=("password",)))

        result = resolver.resolve(HistoryContext(user=UserDTO(id=1, name="tom", password="x")))

        assert result == {"id": 1, "name": "tom"}

    def test_custom_context_path(self):
        """测试：自定义上下文路径"""
        resolver = ActorResolver(ModifiedByConfig(context_path="request.user"))

        assert resolver.resolve({"request": {"user": 7}}) == 7

    def test_context_wins_over_fallback(self):
        """测试：上下文中的操作者优先于回退值"""
        resolver = ActorResolver(ModifiedByConfig())

        assert resolver.resolve(HistoryContext(user=1), fallback=2) == 1

    def test_fallback_used(self):
        """测试：上下文没有操作者时使用回退值"""
        resolver = ActorResolver(ModifiedByConfig())

        assert resolver.resolve(HistoryContext(), fallback={"id": 2}) == {"id": 2}

    def test_none_when_unresolvable(self):
        """测试：无法解析时返回 None"""
        assert ActorResolver(ModifiedByConfig()).resolve(None) is None


class TestModifiedByConfig:
    """ModifiedByConfig 测试"""

    def test_from_mapping_camel_case(self):
        """测试：兼容驼峰键名"""
        config = ModifiedByConfig.from_mapping({"contextPath": "req.user", "blacklist": ["password"]})

        assert config.context_path == "req.user"
        assert config.blacklist == ("password",)

    def test_default_sql_type_is_json(self):
        """测试：默认列类型为 JSON"""
        from sqlalchemy import JSON, String

        assert isinstance(ModifiedByConfig().sql_type(), JSON)
        assert isinstance(ModifiedByConfig(column_type=String(50)).sql_type(), String)
