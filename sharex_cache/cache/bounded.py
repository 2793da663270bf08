import logging
from typing import Callable, Dict, List, Optional

from ..models import FileRecord


class BoundedCategoryCache:
    """
    Capacity-bounded mapping of filename -> FileRecord for one media kind.

    Eviction is by observed modification time (oldest first), not by access
    recency: a freshness cache rather than an LRU. Ties on modified_at are
    broken by insertion order, earliest inserted goes first.

    Not thread-safe on its own. The owning service serializes access.
    """

    def __init__(self,
                 label: str,
                 capacity: int,
                 on_discard: Optional[Callable[[str], None]] = None):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.label = label
        self.capacity = capacity
        # Called with the name of every entry that is evicted or removed
        self.on_discard = on_discard

        self._entries: Dict[str, FileRecord] = {}
        # name -> insertion sequence, kept across in-place replacement
        self._order: Dict[str, int] = {}
        self._seq = 0

    def upsert(self, record: FileRecord) -> List[str]:
        """
        Inserts or replaces the entry for record.name, then evicts the
        oldest entries until the cache is back within capacity.

        Returns the names that were evicted (may include record.name itself
        when it is older than everything already cached).
        """
        if record.name not in self._entries:
            self._order[record.name] = self._seq
            self._seq += 1
        self._entries[record.name] = record
        return self._enforce_capacity()

    def remove(self, name: str) -> bool:
        if name not in self._entries:
            return False
        del self._entries[name]
        del self._order[name]
        self._discarded(name)
        return True

    def get(self, name: str) -> Optional[FileRecord]:
        return self._entries.get(name)

    def values_newest_first(self, limit: Optional[int] = None) -> List[FileRecord]:
        ordered = sorted(self._entries.values(), key=self._sort_key, reverse=True)
        if limit is not None:
            return ordered[:max(0, limit)]
        return ordered

    def names(self) -> List[str]:
        return list(self._entries)

    def clear(self, notify: bool = True):
        """Empties the cache. With notify=False the discard hook is not called."""
        names = list(self._entries)
        self._entries.clear()
        self._order.clear()
        if notify:
            for name in names:
                self._discarded(name)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    # --- Internal Helpers ---

    def _sort_key(self, record: FileRecord):
        return (record.modified_at, self._order[record.name])

    def _enforce_capacity(self) -> List[str]:
        overflow = len(self._entries) - self.capacity
        if overflow <= 0:
            return []

        oldest = sorted(self._entries.values(), key=self._sort_key)[:overflow]
        evicted = []
        for record in oldest:
            del self._entries[record.name]
            del self._order[record.name]
            evicted.append(record.name)
            self._discarded(record.name)

        logging.debug(f"[{self.label}] evicted {len(evicted)} entries: {', '.join(evicted)}")
        return evicted

    def _discarded(self, name: str):
        if self.on_discard is not None:
            self.on_discard(name)
