from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, cast

from combattracker.core.engine.combatant import Combatant, build_combatant
from combattracker.core.engine.conditions import ConditionSet
from combattracker.core.engine.initiative import InitiativeOrder
from combattracker.core.engine.state import EncounterState
from combattracker.core.engine.store import CombatantStore
from combattracker.core.engine.turns import TurnCursor

SCHEMA_VERSION = 1

_PHASES = ("idle", "active", "ended")


# ---------- helpers ----------


def _opt_int(v: Any) -> Optional[int]:
    if v is None:
        return None
    return int(v)


def _int_key_dict(v: Any) -> Dict[int, Any]:
    if not isinstance(v, Mapping):
        return {}
    return {int(k): val for k, val in v.items()}


# ---------- Combatant codec ----------


def combatant_to_dict(c: Combatant) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": c.id}
    out.update(c.field_values())
    # sorted only so snapshots diff cleanly; the set itself has no order
    out["conditions"] = sorted(c.conditions.list())
    return out


def combatant_from_dict(combatant_id: int, d: Mapping[str, Any]) -> Combatant:
    dd = dict(d)
    dd.pop("id", None)
    tags = dd.pop("conditions", None) or []
    return build_combatant(combatant_id, dd, conditions=ConditionSet(tags))


# ---------- EncounterState codec ----------


def encounter_state_to_dict(state: EncounterState) -> Dict[str, Any]:
    """
    JSON-safe snapshot: combatants keyed by id (as strings), the order as a
    list of ids, and the cursor fields.
    """
    return {
        "schema_version": SCHEMA_VERSION,
        "combatants": {
            str(c.id): combatant_to_dict(c) for c in state.store.find_all()
        },
        "order": state.initiative_order,
        "cursor": state.cursor.turn_owner_id,
        "round": state.cursor.round,
        "phase": state.cursor.phase,
        "next_id": state.store.next_id,
        "seq": state.seq,
        "t": state.t,
    }


def encounter_state_from_dict(d: Mapping[str, Any]) -> EncounterState:
    """
    Rebuild an EncounterState from a snapshot and check it is consistent.

    Raises ValueError/TypeError/KeyError for malformed input and
    InvalidStateError when the pieces disagree with each other.
    """
    raw = _int_key_dict(d.get("combatants") or {})
    combatants: Dict[int, Combatant] = {
        cid: combatant_from_dict(cid, cast(Mapping[str, Any], cd))
        for cid, cd in raw.items()
    }
    store = CombatantStore(combatants, next_id=int(d.get("next_id") or 1))

    order_ids: List[int] = [int(x) for x in (d.get("order") or [])]
    # inserting in stored sequence reproduces the stored tie-break
    order = InitiativeOrder((cid, combatants[cid].initiative) for cid in order_ids)

    phase = d.get("phase") or "idle"
    if phase not in _PHASES:
        raise ValueError(f"Unknown phase in snapshot: {phase!r}")

    cursor = TurnCursor(
        phase=phase,
        turn_owner_id=_opt_int(d.get("cursor")),
        round=int(d.get("round") or 0),
    )

    state = EncounterState(
        store=store,
        order=order,
        cursor=cursor,
        seq=int(d.get("seq") or 0),
        t=int(d.get("t") or 0),
    )
    state.verify()
    return state
