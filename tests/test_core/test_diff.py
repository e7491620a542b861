"""差异计算测试

测试覆盖：
- 默认逐字段算法的各条规则
- 结构化（嵌套映射）差异
- compute_diff 结果组装与删除标记处理
- 自定义算法替换默认算法
"""

from datetime import datetime, timedelta

from yhistory.core.diff import DELETED, compute_diff, default_diff_algo, structural_diff


class TestDefaultDiffAlgo:
    """默认算法测试"""

    def test_timestamp_field_never_reported(self):
        """测试：时间戳字段永远不计入差异"""
        assert default_diff_algo("updated_at", datetime(2024, 1, 2), datetime(2024, 1, 1)) is None

    def test_custom_timestamp_field(self):
        """测试：自定义时间戳字段名"""
        assert default_diff_algo("modified", 2, 1, timestamp_field="modified") is None
        assert default_diff_algo("updated_at", 2, 1, timestamp_field="modified") == 2

    def test_deleted_field(self):
        """测试：原值存在、新值缺失时返回删除标记"""
        assert default_diff_algo("title", None, "A") is DELETED

    def test_added_field(self):
        """测试：原值缺失时返回新值"""
        assert default_diff_algo("title", "A", None) == "A"

    def test_empty_new_value_is_deletion(self):
        """测试：原值有效时新值为 0、False 或空字符串记为删除"""
        assert default_diff_algo("count", 0, 5) is DELETED
        assert default_diff_algo("flag", False, True) is DELETED
        assert default_diff_algo("title", "", "A") is DELETED

    def test_empty_original_value_is_addition(self):
        """测试：原值为空值时新值视为新增"""
        assert default_diff_algo("count", 5, 0) == 5
        assert default_diff_algo("title", "A", "") == "A"

    def test_empty_containers_are_values(self):
        """测试：空字典、空列表不视为空值"""
        assert default_diff_algo("tags", [], ["a"]) == []
        assert default_diff_algo("meta", {"a": 1}, {}) == {"a": 1}

    def test_datetime_compared_by_value(self):
        """测试：日期按值比较"""
        moment = datetime(2024, 1, 1, 12, 0)
        same = datetime(2024, 1, 1, 12, 0)

        assert default_diff_algo("at", same, moment) is None
        assert default_diff_algo("at", moment + timedelta(seconds=1), moment) == moment + timedelta(seconds=1)

    def test_scalar_unchanged(self):
        """测试：值相同返回 None"""
        assert default_diff_algo("title", "A", "A") is None

    def test_scalar_changed(self):
        """测试：值不同返回新值"""
        assert default_diff_algo("title", "B", "A") == "B"

    def test_sequence_compared_as_scalar(self):
        """测试：列表整体比较"""
        assert default_diff_algo("tags", ["a", "c"], ["a", "b"]) == ["a", "c"]
        assert default_diff_algo("tags", ["a", "b"], ["a"]) == ["a", "b"]
        assert default_diff_algo("tags", ["a"], ["a"]) is None

    def test_mapping_recurses(self):
        """测试：映射只返回变化的子字段"""
        result = default_diff_algo(
            "meta",
            {"a": 1, "b": 2, "c": {"x": 1}},
            {"a": 1, "b": 3, "c": {"x": 1}},
        )

        assert result == {"b": 2}


class TestStructuralDiff:
    """结构化差异测试"""

    def test_identical_returns_none(self):
        """测试：完全相同返回 None"""
        assert structural_diff({"a": 1}, {"a": 1}) is None

    def test_nested_deletion_resolves_to_none(self):
        """测试：子字段删除记为 None"""
        assert structural_diff({"a": 1, "b": 2}, {"a": 1}) == {"b": None}

    def test_nested_change(self):
        """测试：多层嵌套只返回变化路径"""
        original = {"a": {"b": {"c": 1, "d": 2}}}
        new = {"a": {"b": {"c": 1, "d": 3}}}

        assert structural_diff(original, new) == {"a": {"b": {"d": 3}}}


class TestComputeDiff:
    """compute_diff 测试"""

    def test_only_changed_fields_and_id(self):
        """测试：结果只包含标识字段和变化的字段"""
        diff = compute_diff(
            {"_id": "a1", "title": "A", "message": "M"},
            {"_id": "a1", "title": "B", "message": "M"},
        )

        assert diff == {"_id": "a1", "title": "B"}

    def test_id_always_present(self):
        """测试：没有变化时也包含标识字段"""
        assert compute_diff({"id": 1, "t": "A"}, {"id": 1, "t": "A"}, id_key="id") == {"id": 1}

    def test_deleted_field_is_none_not_text(self):
        """测试：删除的字段记为 None，而不是字符串 "null" """
        diff = compute_diff({"_id": 1, "title": "A"}, {"_id": 1})

        assert "title" in diff
        assert diff["title"] is None
        assert diff["title"] != "null"

    def test_zeroed_field_recorded_as_none(self):
        """测试：数值清零在差异中记为 None"""
        assert compute_diff({"_id": 1, "n": 5}, {"_id": 1, "n": 0}) == {"_id": 1, "n": None}

    def test_updated_at_ignored(self):
        """测试：updated_at 变化不计入差异"""
        diff = compute_diff(
            {"_id": 1, "updated_at": datetime(2024, 1, 1)},
            {"_id": 1, "updated_at": datetime(2024, 1, 2)},
        )

        assert diff == {"_id": 1}

    def test_none_inputs(self):
        """测试：None 视为空文档"""
        assert compute_diff(None, {"_id": 1, "t": "A"}) == {"_id": 1, "t": "A"}

    def test_custom_algo_replaces_default(self):
        """测试：自定义算法完全替代默认算法"""
        calls = []

        def always_upper(key, new_value, original_value):
            calls.append(key)
            if isinstance(new_value, str) and new_value != original_value:
                return new_value.upper()
            return None

        diff = compute_diff(
            {"_id": 1, "title": "a", "updated_at": 1},
            {"_id": 1, "title": "b", "updated_at": 2},
            diff_algo=always_upper,
        )

        assert diff == {"_id": 1, "title": "B"}
        assert set(calls) == {"title", "updated_at"}

    def test_custom_algo_can_report_deletion(self):
        """测试：自定义算法返回 DELETED 时记为 None"""
        diff = compute_diff({"_id": 1, "t": 1}, {"_id": 1, "t": 2}, diff_algo=lambda k, n, o: DELETED)

        assert diff == {"_id": 1, "t": None}
