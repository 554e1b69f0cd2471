from typing import Any, Callable, Dict, Optional, Union
import logging
import time
from pydantic import BaseModel

from timetracker.constants.tables import CacheSlot

log = logging.getLogger(__name__)


class _Miss:
    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


class CacheEntry(BaseModel):
    value: Any
    timestamp: float


class CacheManager:
    """
    Named aggregate caches (all users, CSI task catalog, job addresses) with a
    shared TTL (default 5 minutes).

    Expiry is lazy: a slot is only checked when it is read. The one
    invalidation primitive clears every slot at once.

    Not guarded against concurrent misses: two coroutines that both miss may
    both rebuild and write the same slot, the last write wins. The values are
    equivalent, and a lock would only serialize the event loop.

    `generation` changes on every invalidation. A rebuild that started under
    an older generation must not be written back.
    """
    TTL = 300.0  # seconds

    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.time):
        self.ttl = self.TTL if ttl is None else ttl
        self._clock = clock
        self._slots: Dict[CacheSlot, CacheEntry] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def read(self, slot: Union[CacheSlot, str]) -> Any:
        """Return the slot value, or MISS if the slot is empty or older than the TTL."""
        entry = self._slots.get(CacheSlot(slot))
        if entry is None:
            return MISS
        if self._clock() - entry.timestamp >= self.ttl:
            return MISS
        return entry.value

    def read_stale(self, slot: Union[CacheSlot, str]) -> Any:
        """Return the last written value regardless of age; MISS once invalidated."""
        entry = self._slots.get(CacheSlot(slot))
        return MISS if entry is None else entry.value

    def peek_age(self, slot: Union[CacheSlot, str]) -> Optional[float]:
        entry = self._slots.get(CacheSlot(slot))
        return None if entry is None else self._clock() - entry.timestamp

    def write(self, slot: Union[CacheSlot, str], value: Any) -> None:
        slot = CacheSlot(slot)
        self._slots[slot] = CacheEntry(value=value, timestamp=self._clock())
        log.debug(f"Cached {slot.value} for {self.ttl:.0f} seconds")

    def invalidate_all(self) -> None:
        cleared = len(self._slots)
        self._slots.clear()
        self._generation += 1
        log.debug(f"Cache invalidated due to data changes ({cleared} slot(s) cleared)")
