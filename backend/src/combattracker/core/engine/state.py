from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Mapping, Optional, Tuple

from combattracker.core.engine.combatant import Combatant
from combattracker.core.engine.initiative import InitiativeOrder
from combattracker.core.engine.store import CombatantStore, UpdateResult
from combattracker.core.engine.turns import CursorMove, TurnCursor, TurnPhase
from combattracker.core.errors import InvalidStateError

logger = logging.getLogger(__name__)


@dataclass
class EncounterState:
    """
    One encounter: the combatant arena, the initiative order over it and
    the turn cursor over that order.

    Each method below is a complete operation: it validates first and only
    then mutates, so a raised error leaves the state untouched.
    """

    store: CombatantStore = field(default_factory=CombatantStore)
    order: InitiativeOrder = field(default_factory=InitiativeOrder)
    cursor: TurnCursor = field(default_factory=TurnCursor)

    seq: int = 0
    t: int = 0

    # ---------- views ----------

    @property
    def round(self) -> int:
        return self.cursor.round

    @property
    def phase(self) -> TurnPhase:
        return self.cursor.phase

    @property
    def turn_owner_id(self) -> Optional[int]:
        return self.cursor.turn_owner_id

    @property
    def initiative_order(self) -> List[int]:
        return list(self.order.ids())

    def current_combatant(self) -> Optional[Combatant]:
        if self.cursor.turn_owner_id is None:
            return None
        return self.store.get(self.cursor.turn_owner_id)

    def find_all(self, combatant_type: Optional[str] = None) -> List[Combatant]:
        return self.store.find_all(combatant_type)

    def find_by_id(self, combatant_id: int) -> Combatant:
        return self.store.find_by_id(combatant_id)

    def in_initiative_order(self) -> List[Combatant]:
        return [self.store.find_by_id(cid) for cid in self.order]

    # ---------- combatants ----------

    def create_combatant(self, data: Mapping[str, Any]) -> Combatant:
        combatant = self.store.create(data)
        self.order.insert(combatant.id, combatant.initiative)
        return combatant

    def update_combatant(
        self, combatant_id: int, changes: Mapping[str, Any]
    ) -> UpdateResult:
        result = self.store.update(combatant_id, changes)
        if result.initiative_changed:
            self.order.reposition(combatant_id, result.combatant.initiative)
            logger.debug(
                "initiative repositioned id=%s %s -> %s",
                combatant_id,
                result.previous_initiative,
                result.combatant.initiative,
            )
        return result

    def delete_combatant(
        self, combatant_id: int
    ) -> Tuple[Combatant, Optional[CursorMove]]:
        removed = self.store.delete(combatant_id)
        former_index = self.order.remove(combatant_id)
        move = self.cursor.on_removed(combatant_id, former_index, self.order)
        return removed, move

    def clear_combatants(self) -> Tuple[List[Combatant], Optional[CursorMove]]:
        """Delete everyone on purpose; combat moves to ended."""
        removed = [self.store.delete(c.id) for c in self.store.find_all()]
        self.order.clear()
        move = self.cursor.end() if self.cursor.phase != "ended" else None
        return removed, move

    # ---------- conditions ----------

    def add_condition(self, combatant_id: int, tag: str) -> bool:
        return self.store.find_by_id(combatant_id).conditions.add(tag)

    def remove_condition(self, combatant_id: int, tag: str) -> bool:
        return self.store.find_by_id(combatant_id).conditions.remove(tag)

    def list_conditions(self, combatant_id: int) -> FrozenSet[str]:
        return self.store.find_by_id(combatant_id).conditions.list()

    def clear_conditions(self, combatant_id: int) -> FrozenSet[str]:
        return self.store.find_by_id(combatant_id).conditions.clear()

    # ---------- turns ----------

    def start_combat(self) -> CursorMove:
        return self.cursor.start(self.order)

    def advance_turn(self) -> CursorMove:
        return self.cursor.advance(self.order)

    def reset_combat(self) -> CursorMove:
        return self.cursor.reset()

    # ---------- consistency ----------

    def verify(self) -> None:
        """Raise InvalidStateError if order, arena and cursor disagree."""
        store_ids = {c.id for c in self.store.find_all()}
        order_ids = self.order.ids()
        if len(set(order_ids)) != len(order_ids) or set(order_ids) != store_ids:
            raise InvalidStateError(
                "Initiative order does not match the combatant set",
                meta={"order": list(order_ids), "combatants": sorted(store_ids)},
            )
        for cid, value in self.order.entries():
            if self.store.find_by_id(cid).initiative != value:
                raise InvalidStateError(
                    "Initiative order is stale", meta={"combatant_id": cid}
                )
        if self.cursor.phase == "active" and self.cursor.turn_owner_id not in self.order:
            raise InvalidStateError(
                "Turn cursor points outside the order",
                meta={"turn_owner_id": self.cursor.turn_owner_id},
            )
        if self.cursor.phase != "active" and self.cursor.turn_owner_id is not None:
            raise InvalidStateError(
                "Turn cursor set while combat is not active",
                meta={"phase": self.cursor.phase},
            )
