"""
Dense, ordered object store addressed by stable integer handles.

Handles are assigned monotonically and are never handed out twice within the
lifetime of an Arena, even after the item they named has been removed.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Generic, Iterator, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class Arena(Generic[T]):
    """
    Insertion-ordered collection with never-reused handles.

    Items are kept in two parallel dense lists. Because handles only grow,
    the handle list stays sorted and lookups are a binary search.
    """

    def __init__(self, first_handle: int = 1):
        self._handles: List[int] = []
        self._items: List[T] = []
        self._next_handle = first_handle

    @property
    def next_handle(self) -> int:
        """Handle that the next insert will receive."""
        return self._next_handle

    def reserve(self) -> int:
        """Claim the next handle without storing anything yet."""
        handle = self._next_handle
        self._next_handle += 1
        return handle

    def insert(self, handle: int, item: T) -> None:
        """Store an item under a handle obtained from reserve()."""
        if self._handles and handle <= self._handles[-1]:
            raise ValueError(f"Handle {handle} is not newer than existing handles")
        if handle >= self._next_handle:
            raise ValueError(f"Handle {handle} was never reserved")
        self._handles.append(handle)
        self._items.append(item)

    def add(self, item: T) -> int:
        handle = self.reserve()
        self.insert(handle, item)
        return handle

    def _position(self, handle: int) -> Optional[int]:
        pos = bisect_left(self._handles, handle)
        if pos < len(self._handles) and self._handles[pos] == handle:
            return pos
        return None

    def get(self, handle: int) -> Optional[T]:
        pos = self._position(handle)
        return self._items[pos] if pos is not None else None

    def remove(self, handle: int) -> Optional[T]:
        """Remove and return the item for handle, or None if absent."""
        pos = self._position(handle)
        if pos is None:
            return None
        del self._handles[pos]
        return self._items.pop(pos)

    def remove_where(self, predicate) -> List[Tuple[int, T]]:
        """Remove every item for which predicate(item) is true, keeping order."""
        removed: List[Tuple[int, T]] = []
        kept_handles: List[int] = []
        kept_items: List[T] = []
        for handle, item in zip(self._handles, self._items):
            if predicate(item):
                removed.append((handle, item))
            else:
                kept_handles.append(handle)
                kept_items.append(item)
        self._handles = kept_handles
        self._items = kept_items
        return removed

    def items(self) -> Iterator[Tuple[int, T]]:
        return iter(list(zip(self._handles, self._items)))

    def values(self) -> List[T]:
        return list(self._items)

    def __contains__(self, handle: int) -> bool:
        return self._position(handle) is not None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))
