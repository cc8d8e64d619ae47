from __future__ import annotations

from typing import Any, Dict, List, Optional

import pydantic
from fastapi import APIRouter, Body, Depends
from pydantic import TypeAdapter

from combattracker.api.deps import get_runtime
from combattracker.api.schemas import (
    AdvanceTurnRequest,
    ApplyCommandRequest,
    CombatantOut,
    ConditionRequest,
    ConditionsOut,
    EncounterRuntimeResponse,
    EncounterStateResponse,
)
from combattracker.core.engine.combatant import CombatantType
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
from combattracker.core.errors import ValidationError
from combattracker.core.runtime import EncounterRuntime, RuntimeResult

router = APIRouter(prefix="/encounters", tags=["encounter-runtime"])

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def _response(res: RuntimeResult) -> EncounterRuntimeResponse:
    return EncounterRuntimeResponse(
        encounter_id=res.encounter_id,
        save_id=res.save_id,
        state=res.state,
        events_delta=res.events_delta,
    )


def _run(
    runtime: EncounterRuntime,
    encounter_id: str,
    cmd: Command,
    label: Optional[str] = None,
) -> EncounterRuntimeResponse:
    return _response(runtime.execute(encounter_id, cmd, label=label))


# ---------- state ----------


@router.get("/{encounter_id}/state", response_model=EncounterStateResponse)
def get_state(encounter_id: str, runtime: EncounterRuntime = Depends(get_runtime)):
    state, unsaved = runtime.snapshot_with_status(encounter_id)
    return EncounterStateResponse(
        encounter_id=encounter_id, state=state, unsaved=unsaved
    )


@router.post("/{encounter_id}/state:save", response_model=EncounterRuntimeResponse)
def save_state(encounter_id: str, runtime: EncounterRuntime = Depends(get_runtime)):
    return _response(runtime.retry_save(encounter_id))


@router.post(
    "/{encounter_id}/commands:apply", response_model=EncounterRuntimeResponse
)
def apply_command(
    encounter_id: str,
    req: ApplyCommandRequest,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    try:
        cmd = _command_adapter.validate_python(req.command)
    except pydantic.ValidationError as e:
        raise ValidationError(
            [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
            meta={"command_type": req.command.get("type")},
        ) from e
    return _run(runtime, encounter_id, cmd, req.label)


# ---------- combatants ----------


@router.get("/{encounter_id}/combatants", response_model=List[CombatantOut])
def list_combatants(
    encounter_id: str,
    type: Optional[CombatantType] = None,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    return runtime.read(
        encounter_id,
        lambda s: [CombatantOut.from_combatant(c) for c in s.find_all(type)],
    )


@router.post(
    "/{encounter_id}/combatants",
    response_model=EncounterRuntimeResponse,
    status_code=201,
)
def create_combatant(
    encounter_id: str,
    payload: Dict[str, Any] = Body(...),
    runtime: EncounterRuntime = Depends(get_runtime),
):
    return _run(runtime, encounter_id, CreateCombatant(data=payload))


@router.post(
    "/{encounter_id}/combatants:clear", response_model=EncounterRuntimeResponse
)
def clear_combatants(
    encounter_id: str, runtime: EncounterRuntime = Depends(get_runtime)
):
    return _run(runtime, encounter_id, ClearCombatants())


@router.get(
    "/{encounter_id}/combatants/{combatant_id}", response_model=CombatantOut
)
def get_combatant(
    encounter_id: str,
    combatant_id: int,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    return runtime.read(
        encounter_id,
        lambda s: CombatantOut.from_combatant(s.find_by_id(combatant_id)),
    )


@router.patch(
    "/{encounter_id}/combatants/{combatant_id}",
    response_model=EncounterRuntimeResponse,
)
def update_combatant(
    encounter_id: str,
    combatant_id: int,
    changes: Dict[str, Any] = Body(...),
    runtime: EncounterRuntime = Depends(get_runtime),
):
    cmd = UpdateCombatant(combatant_id=combatant_id, changes=changes)
    return _run(runtime, encounter_id, cmd)


@router.delete(
    "/{encounter_id}/combatants/{combatant_id}",
    response_model=EncounterRuntimeResponse,
)
def delete_combatant(
    encounter_id: str,
    combatant_id: int,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    return _run(runtime, encounter_id, DeleteCombatant(combatant_id=combatant_id))


# ---------- conditions ----------


@router.get(
    "/{encounter_id}/combatants/{combatant_id}/conditions",
    response_model=ConditionsOut,
)
def list_conditions(
    encounter_id: str,
    combatant_id: int,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    tags = runtime.read(encounter_id, lambda s: s.list_conditions(combatant_id))
    return ConditionsOut(combatant_id=combatant_id, conditions=sorted(tags))


@router.post(
    "/{encounter_id}/combatants/{combatant_id}/conditions",
    response_model=EncounterRuntimeResponse,
)
def add_condition(
    encounter_id: str,
    combatant_id: int,
    req: ConditionRequest,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    cmd = AddCondition(combatant_id=combatant_id, condition=req.condition)
    return _run(runtime, encounter_id, cmd)


@router.delete(
    "/{encounter_id}/combatants/{combatant_id}/conditions/{condition}",
    response_model=EncounterRuntimeResponse,
)
def remove_condition(
    encounter_id: str,
    combatant_id: int,
    condition: str,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    cmd = RemoveCondition(combatant_id=combatant_id, condition=condition)
    return _run(runtime, encounter_id, cmd)


@router.delete(
    "/{encounter_id}/combatants/{combatant_id}/conditions",
    response_model=EncounterRuntimeResponse,
)
def clear_conditions(
    encounter_id: str,
    combatant_id: int,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    return _run(runtime, encounter_id, ClearConditions(combatant_id=combatant_id))


# ---------- turns ----------


@router.post("/{encounter_id}/turns:start", response_model=EncounterRuntimeResponse)
def start_combat(encounter_id: str, runtime: EncounterRuntime = Depends(get_runtime)):
    return _run(runtime, encounter_id, StartCombat())


@router.post(
    "/{encounter_id}/turns:advance", response_model=EncounterRuntimeResponse
)
def advance_turn(
    encounter_id: str,
    req: Optional[AdvanceTurnRequest] = None,
    runtime: EncounterRuntime = Depends(get_runtime),
):
    expected = req.expected_turn_owner_id if req is not None else None
    return _run(runtime, encounter_id, AdvanceTurn(expected_turn_owner_id=expected))


@router.post("/{encounter_id}/turns:reset", response_model=EncounterRuntimeResponse)
def reset_combat(encounter_id: str, runtime: EncounterRuntime = Depends(get_runtime)):
    return _run(runtime, encounter_id, ResetCombat())
