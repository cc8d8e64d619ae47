from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from combattracker.core.engine.initiative import InitiativeOrder
from combattracker.core.errors import InvalidStateError

TurnPhase = Literal["idle", "active", "ended"]


@dataclass
class CursorMove:
    """What a cursor transition did; used to build events."""

    turn_owner_id: Optional[int]
    round: int
    wrapped: bool = False
    idled: bool = False


class TurnCursor:
    """
    Whose turn it is, and which round.

    idle   -> no combat being tracked (round may still hold the last value)
    active -> turn_owner_id names an id present in the order
    ended  -> terminal; only reset() leaves it

    The cursor holds an identity, never a position, so inserts and
    repositions in the order cannot make it drift.
    """

    def __init__(
        self,
        *,
        phase: TurnPhase = "idle",
        turn_owner_id: Optional[int] = None,
        round: int = 0,
    ):
        self.phase: TurnPhase = phase
        self.turn_owner_id: Optional[int] = turn_owner_id
        self.round: int = round

    @property
    def is_active(self) -> bool:
        return self.phase == "active"

    def _require_active(self, action: str) -> None:
        if self.phase != "active":
            raise InvalidStateError(
                f"Cannot {action}: combat is not active",
                meta={"phase": self.phase},
            )

    def start(self, order: InitiativeOrder) -> CursorMove:
        if self.phase != "idle":
            raise InvalidStateError(
                "Combat can only be started from idle",
                meta={"phase": self.phase},
            )
        first = order.first()
        if first is None:
            raise InvalidStateError("Cannot start combat with an empty order")
        self.phase = "active"
        self.turn_owner_id = first
        self.round = 1
        return CursorMove(turn_owner_id=first, round=1)

    def advance(self, order: InitiativeOrder) -> CursorMove:
        self._require_active("advance turn")
        if self.turn_owner_id is None:
            raise InvalidStateError("Active combat has no turn owner")
        nxt, wrapped = order.next_after(self.turn_owner_id)
        self.turn_owner_id = nxt
        if wrapped:
            self.round += 1
        return CursorMove(turn_owner_id=nxt, round=self.round, wrapped=wrapped)

    def on_removed(
        self,
        removed_id: int,
        former_index: int,
        order: InitiativeOrder,
    ) -> Optional[CursorMove]:
        """
        React to removed_id having left the order (order is already updated).

        Returns the move when the cursor had to re-anchor, else None.
        """
        if self.phase != "active" or removed_id != self.turn_owner_id:
            return None

        ids = order.ids()
        if not ids:
            self.phase = "idle"
            self.turn_owner_id = None
            return CursorMove(turn_owner_id=None, round=self.round, idled=True)

        # the removed entry "finished" its turn: whoever slid into its slot is next
        wrapped = former_index >= len(ids)
        self.turn_owner_id = ids[0] if wrapped else ids[former_index]
        if wrapped:
            self.round += 1
        return CursorMove(
            turn_owner_id=self.turn_owner_id, round=self.round, wrapped=wrapped
        )

    def end(self) -> CursorMove:
        if self.phase == "ended":
            raise InvalidStateError("Combat has already ended")
        self.phase = "ended"
        self.turn_owner_id = None
        return CursorMove(turn_owner_id=None, round=self.round)

    def reset(self) -> CursorMove:
        self.phase = "idle"
        self.turn_owner_id = None
        self.round = 0
        return CursorMove(turn_owner_id=None, round=0)

    def __repr__(self) -> str:
        return (
            f"TurnCursor(phase={self.phase!r}, "
            f"turn_owner_id={self.turn_owner_id!r}, round={self.round!r})"
        )
