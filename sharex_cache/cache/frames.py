import logging
from typing import Dict, Optional

from ..models import ExtractedFrameSet


class DerivedFrameCache:
    """
    Maps an animation's filename to its most recent extraction result.

    There is no eviction policy of its own: it holds at most one entry per
    name in the animation cache, and that cache is bounded. Entries are
    dropped through invalidate() whenever the source changes, is removed or
    is evicted.
    """

    def __init__(self):
        self._sets: Dict[str, ExtractedFrameSet] = {}

    def get(self, name: str) -> Optional[ExtractedFrameSet]:
        return self._sets.get(name)

    def put(self, name: str, frame_set: ExtractedFrameSet):
        self._sets[name] = frame_set

    def invalidate(self, name: str) -> bool:
        if self._sets.pop(name, None) is None:
            return False
        logging.debug(f"Dropped extracted frames for {name}")
        return True

    def clear(self):
        self._sets.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._sets

    def __len__(self) -> int:
        return len(self._sets)
