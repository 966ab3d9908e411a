"""Tests for context cloning, snapshots and patch merging."""

from dataclasses import dataclass, field
from types import MappingProxyType

import pytest
from pydantic import BaseModel, ConfigDict

from dagflow.core.context import check_patch, clone_context, merge_patch, snapshot


class Ticket(BaseModel):
    title: str = ""
    tags: list[str] = []


@dataclass(frozen=True)
class Counter:
    count: int = 0
    history: list[int] = field(default_factory=list)


class TestMergePatch:
    """Tests for merge_patch."""

    def test_dict_merge_returns_new_dict(self):
        context = {"a": 1, "b": 2}

        merged = merge_patch(context, {"b": 3, "c": 4})

        assert merged == {"a": 1, "b": 3, "c": 4}
        assert context == {"a": 1, "b": 2}

    def test_nested_values_are_replaced(self):
        context = {"user": {"name": "John", "age": 30}}

        merged = merge_patch(context, {"user": {"name": "Jane"}})

        assert merged == {"user": {"name": "Jane"}}

    def test_empty_and_none_patches_are_noops(self):
        context = {"a": 1}

        assert merge_patch(context, None) is context
        assert merge_patch(context, {}) is context

    def test_pydantic_context(self):
        ticket = Ticket(title="old", tags=["x"])

        merged = merge_patch(ticket, {"title": "new"})

        assert merged == Ticket(title="new", tags=["x"])
        assert ticket.title == "old"

    def test_dataclass_context(self):
        merged = merge_patch(Counter(count=1), {"count": 2})

        assert merged == Counter(count=2)

    def test_none_context_becomes_dict(self):
        assert merge_patch(None, {"a": 1}) == {"a": 1}

    def test_non_mapping_patch_rejected(self):
        with pytest.raises(TypeError, match="must be a mapping"):
            merge_patch({}, [("a", 1)])

    def test_unsupported_context_rejected(self):
        with pytest.raises(TypeError, match="Cannot merge"):
            merge_patch(42, {"a": 1})

    def test_unknown_dataclass_field_rejected(self):
        with pytest.raises(TypeError, match=r"\['not_a_field'\] are not fields of Counter"):
            merge_patch(Counter(), {"count": 1, "not_a_field": 1})


class TestCheckPatch:
    """Tests for check_patch."""

    def test_unknown_pydantic_field_rejected(self):
        with pytest.raises(TypeError, match="not fields of Ticket"):
            check_patch(Ticket(), {"owner": "me"})

    def test_pydantic_extra_allow_accepts_any_field(self):
        class Loose(BaseModel):
            model_config = ConfigDict(extra="allow")

        check_patch(Loose(), {"anything": 1})

    def test_mapping_context_accepts_any_field(self):
        check_patch(MappingProxyType({"a": 1}), {"b": 2})

    def test_known_fields_pass(self):
        check_patch(Counter(), {"count": 3, "history": [1]})
        check_patch(Ticket(), {"title": "t"})

    def test_empty_patch_skips_field_check(self):
        check_patch(42, {})
        check_patch(Counter(), None)


class TestSnapshot:
    """Tests for snapshot."""

    def test_dict_snapshot_is_read_only(self):
        view = snapshot({"a": 1})

        assert view["a"] == 1
        with pytest.raises(TypeError):
            view["a"] = 2

    def test_other_contexts_pass_through(self):
        ticket = Ticket()

        assert snapshot(ticket) is ticket


class TestCloneContext:
    """Tests for clone_context."""

    def test_dict_clone_is_deep(self):
        original = {"nested": {"items": [1]}}

        clone = clone_context(original)
        clone["nested"]["items"].append(2)

        assert original == {"nested": {"items": [1]}}

    def test_pydantic_clone_is_deep(self):
        original = Ticket(tags=["a"])

        clone = clone_context(original)
        clone.tags.append("b")

        assert original.tags == ["a"]

    def test_dataclass_clone_is_deep(self):
        original = Counter(history=[1])

        clone = clone_context(original)
        clone.history.append(2)

        assert original.history == [1]
