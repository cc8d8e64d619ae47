from __future__ import annotations

import bisect
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from combattracker.core.errors import InvalidStateError, NotFoundError


class InitiativeOrder:
    """
    Ids ranked by descending initiative.

    Equal values keep the order in which they were inserted. Two parallel
    lists are kept in lock-step: ``_ids`` and ``_keys`` (negated values, so
    the key list is ascending and ``bisect`` applies).
    """

    def __init__(self, entries: Iterable[Tuple[int, float]] = ()):
        self._ids: List[int] = []
        self._keys: List[float] = []
        self._values: Dict[int, float] = {}
        for combatant_id, value in entries:
            self.insert(combatant_id, value)

    # ---------- reads ----------

    def ids(self) -> Tuple[int, ...]:
        return tuple(self._ids)

    def entries(self) -> List[Tuple[int, float]]:
        return [(cid, self._values[cid]) for cid in self._ids]

    def value_of(self, combatant_id: int) -> float:
        try:
            return self._values[combatant_id]
        except KeyError:
            raise NotFoundError("Initiative entry", combatant_id) from None

    def first(self) -> Optional[int]:
        return self._ids[0] if self._ids else None

    def next_after(self, combatant_id: int) -> Tuple[int, bool]:
        """Id following combatant_id in traversal order, and whether it wrapped."""
        idx = self._index_of(combatant_id) + 1
        if idx >= len(self._ids):
            return self._ids[0], True
        return self._ids[idx], False

    def __contains__(self, combatant_id: object) -> bool:
        return combatant_id in self._values

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[int]:
        return iter(tuple(self._ids))

    def __bool__(self) -> bool:
        return bool(self._ids)

    # ---------- writes ----------

    def insert(self, combatant_id: int, initiative: float) -> None:
        if combatant_id in self._values:
            raise InvalidStateError(
                f"Combatant {combatant_id} is already in the initiative order",
                meta={"combatant_id": combatant_id},
            )
        key = -initiative
        # bisect_right: lands after every entry with an equal value
        idx = bisect.bisect_right(self._keys, key)
        self._keys.insert(idx, key)
        self._ids.insert(idx, combatant_id)
        self._values[combatant_id] = initiative

    def remove(self, combatant_id: int) -> int:
        """Drop the id; returns the index it occupied."""
        idx = self._index_of(combatant_id)
        del self._ids[idx]
        del self._keys[idx]
        del self._values[combatant_id]
        return idx

    def reposition(self, combatant_id: int, initiative: float) -> None:
        self.remove(combatant_id)
        self.insert(combatant_id, initiative)

    def clear(self) -> None:
        self._ids.clear()
        self._keys.clear()
        self._values.clear()

    def _index_of(self, combatant_id: int) -> int:
        if combatant_id not in self._values:
            raise NotFoundError("Initiative entry", combatant_id)
        key = -self._values[combatant_id]
        lo = bisect.bisect_left(self._keys, key)
        hi = bisect.bisect_right(self._keys, key)
        return self._ids.index(combatant_id, lo, hi)
