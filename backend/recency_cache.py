"""
Bounded least-recently-used cache.

Hash index plus a doubly linked recency list, so get/put are O(1). The head side of
the list is most recently used, the tail side is evicted first.

Not thread-safe: callers sharing an instance across tasks or threads must hold a lock.
"""
from typing import Dict, Generic, Hashable, Iterator, List, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class _Node(Generic[K, V]):
    __slots__ = ("key", "value", "prev", "next")

    def __init__(self, key: Optional[K] = None, value: Optional[V] = None):
        self.key = key
        self.value = value
        self.prev: Optional["_Node[K, V]"] = None
        self.next: Optional["_Node[K, V]"] = None


class LRUCache(Generic[K, V]):
    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._index: Dict[K, _Node[K, V]] = {}
        # Sentinels
        self._head: _Node[K, V] = _Node()
        self._tail: _Node[K, V] = _Node()
        self._head.next = self._tail
        self._tail.prev = self._head

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: K) -> bool:
        """Membership test; does not change recency."""
        return key in self._index

    def get(self, key: K) -> Optional[V]:
        node = self._index.get(key)
        if node is None:
            return None
        self._move_to_head(node)
        return node.value

    def put(self, key: K, value: V) -> Optional[K]:
        """
        Insert or update a value and mark it most recently used.

        Returns:
            The evicted key, if the insert pushed the cache over capacity
        """
        node = self._index.get(key)
        if node is not None:
            node.value = value
            self._move_to_head(node)
            return None

        node = _Node(key, value)
        self._index[key] = node
        self._add_to_head(node)

        if len(self._index) > self.capacity:
            evicted = self._remove_tail()
            return evicted.key
        return None

    def pop(self, key: K) -> Optional[V]:
        node = self._index.pop(key, None)
        if node is None:
            return None
        self._unlink(node)
        return node.value

    def clear(self) -> None:
        self._index.clear()
        self._head.next = self._tail
        self._tail.prev = self._head

    def keys(self) -> List[K]:
        """Keys from most to least recently used."""
        return list(self._iter_keys())

    def _iter_keys(self) -> Iterator[K]:
        node = self._head.next
        while node is not self._tail:
            yield node.key
            node = node.next

    def _add_to_head(self, node: _Node[K, V]) -> None:
        node.prev = self._head
        node.next = self._head.next
        self._head.next.prev = node
        self._head.next = node

    def _unlink(self, node: _Node[K, V]) -> None:
        node.prev.next = node.next
        node.next.prev = node.prev
        node.prev = None
        node.next = None

    def _move_to_head(self, node: _Node[K, V]) -> None:
        self._unlink(node)
        self._add_to_head(node)

    def _remove_tail(self) -> _Node[K, V]:
        node = self._tail.prev
        self._unlink(node)
        del self._index[node.key]
        return node
