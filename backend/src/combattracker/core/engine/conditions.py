from __future__ import annotations

from typing import FrozenSet, Iterable, Iterator, Literal, Set, Tuple, get_args

from combattracker.core.errors import UnknownConditionError

Condition = Literal[
    "blinded",
    "charmed",
    "deafened",
    "frightened",
    "grappled",
    "incapacitated",
    "invisible",
    "paralyzed",
    "petrified",
    "poisoned",
    "prone",
    "restrained",
    "stunned",
    "unconscious",
]

CONDITIONS: Tuple[str, ...] = get_args(Condition)
_KNOWN: FrozenSet[str] = frozenset(CONDITIONS)


def normalize_condition(tag: object) -> str:
    """Return the canonical tag or raise UnknownConditionError."""
    if not isinstance(tag, str):
        raise UnknownConditionError(tag)
    norm = tag.strip().lower()
    if norm not in _KNOWN:
        raise UnknownConditionError(tag)
    return norm


class ConditionSet:
    """
    Status tags attached to one combatant.

    Plain set algebra: add/remove are idempotent and the contents carry no
    order. Only the 14 recognised tags can ever be members.
    """

    __slots__ = ("_tags",)

    def __init__(self, tags: Iterable[str] = ()):
        self._tags: Set[str] = set()
        for tag in tags:
            self._tags.add(normalize_condition(tag))

    def add(self, tag: str) -> bool:
        """Insert tag; returns True when the set actually changed."""
        norm = normalize_condition(tag)
        if norm in self._tags:
            return False
        self._tags.add(norm)
        return True

    def remove(self, tag: str) -> bool:
        """Drop tag if present; returns True when the set actually changed."""
        norm = normalize_condition(tag)
        if norm not in self._tags:
            return False
        self._tags.discard(norm)
        return True

    def clear(self) -> FrozenSet[str]:
        removed = frozenset(self._tags)
        self._tags.clear()
        return removed

    def list(self) -> FrozenSet[str]:
        return frozenset(self._tags)

    def copy(self) -> "ConditionSet":
        return ConditionSet(self._tags)

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag.strip().lower() in self._tags

    def __iter__(self) -> Iterator[str]:
        return iter(frozenset(self._tags))

    def __len__(self) -> int:
        return len(self._tags)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ConditionSet):
            return self._tags == other._tags
        if isinstance(other, (set, frozenset)):
            return self._tags == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"ConditionSet({sorted(self._tags)!r})"
