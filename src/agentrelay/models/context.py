"""
Immutable context variables threaded through a run.

Every mutation returns a new ``ContextVariables``; the receiver never
changes. Nested dicts, lists and sets are frozen on the way in so a holder
cannot mutate a value another holder can see. This is what lets guardrails
and tools read the same snapshot concurrently without locks.
"""

import threading
from collections.abc import Iterator, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Sequence

_MISSING = object()


class Lazy:
    """
    Deferred context value, computed at most once and only when read.

    The memoized value is shared by every ContextVariables instance that
    carries this Lazy, so derived snapshots never recompute it.

    Example:
        ctx = ContextVariables(profile=Lazy(lambda: load_profile(user_id)))
        ctx.get("profile")   # factory runs here
        ctx.set("x", 1).get("profile")   # cached, factory not called again
    """

    __slots__ = ("_factory", "_value", "_lock")

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._value: Any = _MISSING
        self._lock = threading.Lock()

    @property
    def evaluated(self) -> bool:
        return self._value is not _MISSING

    def resolve(self) -> Any:
        if self._value is _MISSING:
            with self._lock:
                if self._value is _MISSING:
                    self._value = freeze(self._factory())
        return self._value

    def __repr__(self) -> str:
        state = repr(self._value) if self.evaluated else "<pending>"
        return f"Lazy({state})"


def freeze(value: Any) -> Any:
    """Recursively convert mutable containers into read-only equivalents."""
    if isinstance(value, (Lazy, str, bytes)):
        return value
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze, producing plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    if isinstance(value, frozenset):
        return {thaw(v) for v in value}
    return value


class ContextVariables(Mapping):
    """
    Immutable, copy-on-write key/value state for one run.

    Examples:
        ctx = ContextVariables({"user_tier": "premium"})
        updated = ctx.set("step", 2)
        ctx.get("step")       # None, the original is unchanged
        updated.get("step")   # 2
    """

    __slots__ = ("_data", "_history")

    def __init__(self, initial: Mapping[str, Any] | None = None, **kwargs: Any):
        merged = dict(initial or {})
        merged.update(kwargs)
        for key in merged:
            if not isinstance(key, str):
                raise TypeError(f"Context keys must be strings, got {type(key).__name__}")
        self._data = MappingProxyType({k: freeze(v) for k, v in merged.items()})
        self._history: tuple[Mapping[str, Any], ...] = ()

    @classmethod
    def _derive(
        cls,
        data: dict[str, Any],
        history: tuple[Mapping[str, Any], ...],
        change: Mapping[str, Any],
    ) -> "ContextVariables":
        instance = cls.__new__(cls)
        instance._data = MappingProxyType(data)
        instance._history = history + (change,)
        return instance

    # Mapping protocol ---------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        value = self._data[key]
        return value.resolve() if isinstance(value, Lazy) else value

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    # Reads --------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return self[key]

    def get_path(self, path: Sequence[str] | str, default: Any = None) -> Any:
        """
        Read a nested value.

        Args:
            path: Sequence of keys, or a dotted string ("user.profile.name")
            default: Returned when any segment is missing

        Returns:
            The nested value or default
        """
        keys = path.split(".") if isinstance(path, str) else list(path)
        if not keys:
            return default

        current: Any = self.get(keys[0], _MISSING)
        for key in keys[1:]:
            if isinstance(current, Lazy):
                current = current.resolve()
            if isinstance(current, Mapping) and key in current:
                current = current[key]
            else:
                return default
        return default if current is _MISSING else current

    @property
    def history(self) -> tuple[Mapping[str, Any], ...]:
        """Change records, oldest first, inherited from ancestors."""
        return self._history

    def to_dict(self, resolve_lazy: bool = True) -> dict[str, Any]:
        """
        Plain, mutable copy of the variables.

        Args:
            resolve_lazy: Evaluate pending Lazy values; when False, pending
                values are omitted and already-evaluated ones are included
        """
        result = {}
        for key, value in self._data.items():
            if isinstance(value, Lazy):
                if not resolve_lazy and not value.evaluated:
                    continue
                value = value.resolve()
            result[key] = thaw(value)
        return result

    # Copy-on-write mutations ---------------------------------------------

    def set(self, key: str, value: Any) -> "ContextVariables":
        """Return a new instance with ``key`` bound to ``value``."""
        if not isinstance(key, str):
            raise TypeError(f"Context keys must be strings, got {type(key).__name__}")
        data = dict(self._data)
        data[key] = freeze(value)
        return self._derive(data, self._history, _change("set", [key]))

    def update(self, values: Mapping[str, Any] | None = None, **kwargs: Any) -> "ContextVariables":
        """Return a new instance with several keys bound at once."""
        merged = dict(values or {})
        merged.update(kwargs)
        if not merged:
            return self

        data = dict(self._data)
        for key, value in merged.items():
            if not isinstance(key, str):
                raise TypeError(f"Context keys must be strings, got {type(key).__name__}")
            data[key] = freeze(value)
        return self._derive(data, self._history, _change("update", sorted(merged)))

    def delete(self, key: str) -> "ContextVariables":
        """Return a new instance without ``key``; a missing key is a no-op."""
        if key not in self._data:
            return self
        data = dict(self._data)
        del data[key]
        return self._derive(data, self._history, _change("delete", [key]))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ContextVariables):
            return dict(self._data) == dict(other._data)
        return NotImplemented

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return f"ContextVariables({dict(self._data)!r})"


def _change(action: str, keys: list[str]) -> Mapping[str, Any]:
    """Read-only change record shared by every derived snapshot."""
    return MappingProxyType(
        {"action": action, "keys": tuple(keys), "timestamp": datetime.now().isoformat()}
    )


def as_context(value: "ContextVariables | Mapping[str, Any] | None") -> ContextVariables:
    """Coerce caller-supplied initial values into a ContextVariables."""
    if isinstance(value, ContextVariables):
        return value
    return ContextVariables(value or {})
