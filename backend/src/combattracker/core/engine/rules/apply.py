from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from combattracker.core.engine.commands import (
    AddCondition,
    AdvanceTurn,
    ClearCombatants,
    ClearConditions,
    Command,
    CreateCombatant,
    DeleteCombatant,
    RemoveCondition,
    ResetCombat,
    StartCombat,
    UpdateCombatant,
)
from combattracker.core.engine.conditions import normalize_condition
from combattracker.core.engine.events import (
    ev_combat_cleared,
    ev_combat_idled,
    ev_combat_reset,
    ev_combat_started,
    ev_combatant_created,
    ev_combatant_removed,
    ev_combatant_updated,
    ev_condition_applied,
    ev_condition_removed,
    ev_conditions_cleared,
    ev_hit_points_clamped,
    ev_initiative_repositioned,
    ev_round_started,
    ev_turn_reanchored,
    ev_turn_started,
)
from combattracker.core.engine.state import EncounterState
from combattracker.core.engine.turns import CursorMove
from combattracker.core.errors import InvalidStateError

logger = logging.getLogger(__name__)


def _bump(state: EncounterState) -> Tuple[int, int]:
    state.seq += 1
    state.t += 1
    return state.seq, state.t


def _turn_events(state: EncounterState, move: CursorMove) -> List[dict]:
    """RoundStarted (when a new round begins) followed by TurnStarted."""
    evs: List[dict] = []
    if move.turn_owner_id is None:
        return evs
    if move.wrapped:
        seq, t = _bump(state)
        evs.append(
            ev_round_started(
                seq=seq, t=t, round_=move.round, turn_owner_id=move.turn_owner_id
            ).model_dump(mode="json")
        )
    seq, t = _bump(state)
    evs.append(
        ev_turn_started(
            seq=seq, t=t, round_=move.round, turn_owner_id=move.turn_owner_id
        ).model_dump(mode="json")
    )
    return evs


def _reanchor_events(
    state: EncounterState, removed_id: int, move: Optional[CursorMove]
) -> List[dict]:
    if move is None:
        return []
    if not move.idled and move.turn_owner_id is None:
        raise InvalidStateError("Turn cursor re-anchored without a turn owner")
    seq, t = _bump(state)
    if move.idled:
        return [
            ev_combat_idled(
                seq=seq, t=t, round_=move.round, reason="order_emptied"
            ).model_dump(mode="json")
        ]
    evs = [
        ev_turn_reanchored(
            seq=seq,
            t=t,
            round_=move.round,
            turn_owner_id=move.turn_owner_id,
            removed_id=removed_id,
            wrapped=move.wrapped,
        ).model_dump(mode="json")
    ]
    return evs + _turn_events(state, move)


def apply_command(
    state: EncounterState, cmd: Command
) -> Tuple[EncounterState, List[dict]]:
    """
    Apply one command and return (state, events_as_dicts).

    Failures raise TrackerError subclasses and leave state unchanged,
    including the event counters.
    """
    events: List[dict] = []

    if isinstance(cmd, CreateCombatant):
        c = state.create_combatant(cmd.data)
        seq, t = _bump(state)
        events.append(
            ev_combatant_created(
                seq=seq,
                t=t,
                round_=state.round,
                turn_owner_id=state.turn_owner_id,
                combatant_id=c.id,
                name=c.name,
                combatant_type=c.type,
                initiative=c.initiative,
                position=state.initiative_order.index(c.id),
            ).model_dump(mode="json")
        )
        logger.debug("CreateCombatant applied id=%s", c.id)
        return state, events

    if isinstance(cmd, UpdateCombatant):
        res = state.update_combatant(cmd.combatant_id, cmd.changes)
        c = res.combatant
        seq, t = _bump(state)
        events.append(
            ev_combatant_updated(
                seq=seq,
                t=t,
                round_=state.round,
                turn_owner_id=state.turn_owner_id,
                combatant_id=c.id,
                changed=res.changed,
            ).model_dump(mode="json")
        )
        if res.hp_clamped:
            seq, t = _bump(state)
            events.append(
                ev_hit_points_clamped(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    combatant_id=c.id,
                    requested=res.requested_hp,
                    current_hp=c.current_hp,
                    max_hp=c.max_hp,
                ).model_dump(mode="json")
            )
        if res.initiative_changed:
            seq, t = _bump(state)
            events.append(
                ev_initiative_repositioned(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    combatant_id=c.id,
                    previous=res.previous_initiative,
                    initiative=c.initiative,
                    order=state.initiative_order,
                ).model_dump(mode="json")
            )
        return state, events

    if isinstance(cmd, DeleteCombatant):
        removed, move = state.delete_combatant(cmd.combatant_id)
        seq, t = _bump(state)
        events.append(
            ev_combatant_removed(
                seq=seq,
                t=t,
                round_=state.round,
                turn_owner_id=state.turn_owner_id,
                combatant_id=removed.id,
                name=removed.name,
            ).model_dump(mode="json")
        )
        events.extend(_reanchor_events(state, removed.id, move))
        return state, events

    if isinstance(cmd, ClearCombatants):
        removed, _move = state.clear_combatants()
        seq, t = _bump(state)
        events.append(
            ev_combat_cleared(
                seq=seq, t=t, round_=state.round, removed_ids=[c.id for c in removed]
            ).model_dump(mode="json")
        )
        logger.info("encounter cleared, %d combatants removed", len(removed))
        return state, events

    if isinstance(cmd, AddCondition):
        changed = state.add_condition(cmd.combatant_id, cmd.condition)
        if changed:
            seq, t = _bump(state)
            events.append(
                ev_condition_applied(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    target_id=cmd.combatant_id,
                    condition=normalize_condition(cmd.condition),
                ).model_dump(mode="json")
            )
        return state, events

    if isinstance(cmd, RemoveCondition):
        changed = state.remove_condition(cmd.combatant_id, cmd.condition)
        if changed:
            seq, t = _bump(state)
            events.append(
                ev_condition_removed(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    target_id=cmd.combatant_id,
                    condition=normalize_condition(cmd.condition),
                ).model_dump(mode="json")
            )
        return state, events

    if isinstance(cmd, ClearConditions):
        removed_tags = state.clear_conditions(cmd.combatant_id)
        if removed_tags:
            seq, t = _bump(state)
            events.append(
                ev_conditions_cleared(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    turn_owner_id=state.turn_owner_id,
                    target_id=cmd.combatant_id,
                    conditions=sorted(removed_tags),
                ).model_dump(mode="json")
            )
        return state, events

    if isinstance(cmd, StartCombat):
        move = state.start_combat()
        if move.turn_owner_id is None:
            raise InvalidStateError("Combat started without a turn owner")
        seq, t = _bump(state)
        events.append(
            ev_combat_started(
                seq=seq, t=t, round_=move.round, order=state.initiative_order
            ).model_dump(mode="json")
        )
        seq, t = _bump(state)
        events.append(
            ev_round_started(
                seq=seq, t=t, round_=move.round, turn_owner_id=move.turn_owner_id
            ).model_dump(mode="json")
        )
        events.extend(_turn_events(state, move))
        return state, events

    if isinstance(cmd, AdvanceTurn):
        if (
            cmd.expected_turn_owner_id is not None
            and state.phase == "active"
            and cmd.expected_turn_owner_id != state.turn_owner_id
        ):
            raise InvalidStateError(
                "Turn has already moved on",
                meta={
                    "expected_turn_owner_id": cmd.expected_turn_owner_id,
                    "turn_owner_id": state.turn_owner_id,
                },
            )
        move = state.advance_turn()
        events.extend(_turn_events(state, move))
        return state, events

    if isinstance(cmd, ResetCombat):
        previous_round = state.round
        state.reset_combat()
        seq, t = _bump(state)
        events.append(
            ev_combat_reset(seq=seq, t=t, previous_round=previous_round).model_dump(
                mode="json"
            )
        )
        return state, events

    raise InvalidStateError(f"Unsupported command: {type(cmd).__name__}")
