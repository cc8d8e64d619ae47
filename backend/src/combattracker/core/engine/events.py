from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_id: UUID = Field(default_factory=uuid4)
    seq: int
    t: int
    type: str

    round: int
    turn_owner_id: Optional[int] = None
    actor_id: Optional[int] = None

    payload: Dict[str, Any] = Field(default_factory=dict)


def ev_combatant_created(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    combatant_id: int,
    name: str,
    combatant_type: str,
    initiative: float,
    position: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatantCreated",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={
            "combatant_id": combatant_id,
            "name": name,
            "combatant_type": combatant_type,
            "initiative": initiative,
            "position": position,
        },
    )


def ev_combatant_updated(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    combatant_id: int,
    changed: Dict[str, Any],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatantUpdated",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={"combatant_id": combatant_id, "changed": changed},
    )


def ev_hit_points_clamped(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    combatant_id: int,
    requested: int,
    current_hp: int,
    max_hp: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="HitPointsClamped",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={
            "combatant_id": combatant_id,
            "requested": requested,
            "current_hp": current_hp,
            "max_hp": max_hp,
        },
    )


def ev_initiative_repositioned(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    combatant_id: int,
    previous: float,
    initiative: float,
    order: List[int],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="InitiativeRepositioned",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=combatant_id,
        payload={
            "combatant_id": combatant_id,
            "previous": previous,
            "initiative": initiative,
            "order": order,
        },
    )


def ev_combatant_removed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    combatant_id: int,
    name: str,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatantRemoved",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"combatant_id": combatant_id, "name": name},
    )


def ev_turn_reanchored(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: int,
    removed_id: int,
    wrapped: bool,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TurnReanchored",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=turn_owner_id,
        payload={
            "removed_id": removed_id,
            "combatant_id": turn_owner_id,
            "wrapped": wrapped,
        },
    )


def ev_combat_idled(
    *, seq: int, t: int, round_: int, reason: str
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatIdled",
        round=round_,
        turn_owner_id=None,
        actor_id=None,
        payload={"reason": reason},
    )


def ev_combat_cleared(
    *, seq: int, t: int, round_: int, removed_ids: List[int]
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatCleared",
        round=round_,
        turn_owner_id=None,
        actor_id=None,
        payload={"removed_ids": removed_ids},
    )


def ev_condition_applied(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    target_id: int,
    condition: str,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionApplied",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"target_id": target_id, "condition": condition},
    )


def ev_condition_removed(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    target_id: int,
    condition: str,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionRemoved",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"target_id": target_id, "condition": condition},
    )


def ev_conditions_cleared(
    *,
    seq: int,
    t: int,
    round_: int,
    turn_owner_id: Optional[int],
    target_id: int,
    conditions: List[str],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ConditionsCleared",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"target_id": target_id, "conditions": conditions},
    )


def ev_combat_started(
    *, seq: int, t: int, round_: int, order: List[int]
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatStarted",
        round=round_,
        turn_owner_id=None,
        actor_id=None,
        payload={"order": order},
    )


def ev_round_started(
    *, seq: int, t: int, round_: int, turn_owner_id: int
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="RoundStarted",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=None,
        payload={"round": round_},
    )


def ev_turn_started(
    *, seq: int, t: int, round_: int, turn_owner_id: int
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TurnStarted",
        round=round_,
        turn_owner_id=turn_owner_id,
        actor_id=turn_owner_id,
        payload={"combatant_id": turn_owner_id},
    )


def ev_combat_reset(*, seq: int, t: int, previous_round: int) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatReset",
        round=0,
        turn_owner_id=None,
        actor_id=None,
        payload={"previous_round": previous_round},
    )
