"""Unit tests for immutable context variables"""
import threading

import pytest
from agentrelay.models.context import ContextVariables, Lazy, as_context


class TestImmutability:
    """Every mutation returns a new instance and leaves the receiver unchanged"""

    def test_set_returns_new_instance(self):
        ctx = ContextVariables({"tier": "premium"})
        updated = ctx.set("step", 2)

        assert updated is not ctx
        assert ctx.get("step") is None
        assert updated["step"] == 2
        assert updated["tier"] == "premium"

    def test_chain_of_sets_leaves_ancestors_untouched(self):
        base = ContextVariables()
        first = base.set("a", 1)
        second = first.set("b", 2)
        third = second.set("a", 99)

        assert dict(base) == {}
        assert dict(first) == {"a": 1}
        assert dict(second) == {"a": 1, "b": 2}
        assert dict(third) == {"a": 99, "b": 2}

    def test_update_and_delete(self):
        ctx = ContextVariables(a=1, b=2)
        updated = ctx.update({"c": 3}, d=4)
        deleted = updated.delete("a")

        assert dict(updated) == {"a": 1, "b": 2, "c": 3, "d": 4}
        assert "a" not in deleted
        assert "a" in updated

    def test_update_with_nothing_returns_same_instance(self):
        ctx = ContextVariables(a=1)
        assert ctx.update() is ctx

    def test_delete_missing_key_is_noop(self):
        ctx = ContextVariables(a=1)
        assert ctx.delete("missing") is ctx

    def test_nested_values_are_frozen(self):
        profile = {"name": "Ada", "roles": ["admin"]}
        ctx = ContextVariables(profile=profile)

        profile["name"] = "Changed"
        assert ctx.get_path("profile.name") == "Ada"

        with pytest.raises(TypeError):
            ctx["profile"]["name"] = "Mutated"
        assert ctx["profile"]["roles"] == ("admin",)

    def test_to_dict_returns_mutable_copy(self):
        ctx = ContextVariables(profile={"roles": ["admin"]})
        plain = ctx.to_dict()
        plain["profile"]["roles"].append("owner")

        assert ctx["profile"]["roles"] == ("admin",)

    def test_non_string_keys_rejected(self):
        with pytest.raises(TypeError, match="Context keys must be strings"):
            ContextVariables({1: "x"})
        with pytest.raises(TypeError):
            ContextVariables().set(1, "x")


class TestReads:
    """Test lookup helpers"""

    def test_get_path_with_list_and_dotted(self):
        ctx = ContextVariables(user={"profile": {"name": "Ada"}})

        assert ctx.get_path("user.profile.name") == "Ada"
        assert ctx.get_path(["user", "profile", "name"]) == "Ada"
        assert ctx.get_path("user.missing.name", default="n/a") == "n/a"
        assert ctx.get_path("absent") is None

    def test_history_records_changes(self):
        ctx = ContextVariables().set("a", 1).update(b=2, c=3).delete("a")

        actions = [entry["action"] for entry in ctx.history]
        assert actions == ["set", "update", "delete"]
        assert ctx.history[1]["keys"] == ("b", "c")

    def test_history_records_are_read_only(self):
        parent = ContextVariables().set("a", 1)
        child = parent.set("b", 2)

        with pytest.raises(TypeError):
            child.history[0]["keys"] = ("z",)
        with pytest.raises(AttributeError):
            child.history[0]["keys"].append("z")

        assert parent.history[0]["keys"] == ("a",)

    def test_equality_by_content(self):
        assert ContextVariables(a=1) == ContextVariables({"a": 1})
        assert ContextVariables(a=1) != ContextVariables(a=2)

    def test_as_context(self):
        ctx = ContextVariables(a=1)
        assert as_context(ctx) is ctx
        assert as_context({"a": 1}) == ctx
        assert len(as_context(None)) == 0


class TestLazyValues:
    """Deferred values are computed at most once, and only when read"""

    def test_factory_not_called_until_read(self):
        calls = []
        ctx = ContextVariables(profile=Lazy(lambda: calls.append(1) or {"name": "Ada"}))

        assert calls == []
        assert ctx["profile"]["name"] == "Ada"
        assert calls == [1]

    def test_memoized_across_derived_instances(self):
        calls = []
        lazy = Lazy(lambda: calls.append(1) or 42)
        ctx = ContextVariables(answer=lazy)

        assert ctx.get("answer") == 42
        derived = ctx.set("other", 1)
        assert derived.get("answer") == 42
        assert calls == [1]

    def test_to_dict_can_skip_pending(self):
        ctx = ContextVariables(ready=1, pending=Lazy(lambda: 2))

        assert ctx.to_dict(resolve_lazy=False) == {"ready": 1}
        assert ctx.to_dict() == {"ready": 1, "pending": 2}
        assert ctx.to_dict(resolve_lazy=False) == {"ready": 1, "pending": 2}

    def test_concurrent_reads_compute_once(self):
        calls = []
        lazy = Lazy(lambda: calls.append(1) or "value")
        ctx = ContextVariables(key=lazy)

        threads = [threading.Thread(target=lambda: ctx.get("key")) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert calls == [1]
        assert lazy.evaluated
