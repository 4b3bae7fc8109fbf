from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Generic, TypeVar, cast

K = TypeVar("K")
V = TypeVar("V")


class LRUDict(OrderedDict, Generic[K, V]):
    """Bounded mapping that drops the least recently used entry.

    Reads and writes refresh recency; :meth:`peek` does not. ``on_evict`` is
    called with the dropped key and value whenever the bound pushes one out.
    Not thread-safe: each relay memo is owned by the central loop.
    """

    def __init__(
        self,
        maxsize: int | None = 1000,
        on_evict: Callable[[K, V], None] | None = None,
    ) -> None:
        super().__init__()
        self.maxsize = maxsize if (isinstance(maxsize, int) and maxsize > 0) else None
        self.on_evict = on_evict
        self.evictions = 0

    def __setitem__(self, key: K, value: V) -> None:
        if key in self:
            super().__delitem__(key)
        super().__setitem__(key, value)
        while self.maxsize is not None and len(self) > self.maxsize:
            old_key, old_value = self.popitem(last=False)
            self.evictions += 1
            if self.on_evict is not None:
                self.on_evict(old_key, old_value)

    def __getitem__(self, key: K) -> V:
        value = cast(V, super().__getitem__(key))
        self.move_to_end(key, last=True)
        return value

    def get(self, key: K, default: Any = None) -> Any:
        try:
            return self.__getitem__(key)
        except KeyError:
            return default

    def peek(self, key: K, default: Any = None) -> Any:
        """Value for ``key`` without touching its recency."""
        return super().get(key, default)
