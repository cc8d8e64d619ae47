# backend/src/combattracker/core/engine/commands.py

from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class CommandBase(BaseModel):
    model_config = ConfigDict(extra="forbid")
    type: str


class CreateCombatant(CommandBase):
    type: Literal["CreateCombatant"] = "CreateCombatant"
    # raw field values; domains are checked by the store, not here
    data: Dict[str, Any]


class UpdateCombatant(CommandBase):
    type: Literal["UpdateCombatant"] = "UpdateCombatant"
    combatant_id: int
    changes: Dict[str, Any] = Field(default_factory=dict)


class DeleteCombatant(CommandBase):
    type: Literal["DeleteCombatant"] = "DeleteCombatant"
    combatant_id: int


class ClearCombatants(CommandBase):
    type: Literal["ClearCombatants"] = "ClearCombatants"


class AddCondition(CommandBase):
    type: Literal["AddCondition"] = "AddCondition"
    combatant_id: int
    # not a Literal: unknown tags must reach ConditionSet and fail there
    condition: str


class RemoveCondition(CommandBase):
    type: Literal["RemoveCondition"] = "RemoveCondition"
    combatant_id: int
    condition: str


class ClearConditions(CommandBase):
    type: Literal["ClearConditions"] = "ClearConditions"
    combatant_id: int


class StartCombat(CommandBase):
    type: Literal["StartCombat"] = "StartCombat"


class AdvanceTurn(CommandBase):
    type: Literal["AdvanceTurn"] = "AdvanceTurn"
    # optional guard: reject if the caller's view of the turn is stale
    expected_turn_owner_id: Optional[int] = None


class ResetCombat(CommandBase):
    type: Literal["ResetCombat"] = "ResetCombat"


Command = Union[
    CreateCombatant,
    UpdateCombatant,
    DeleteCombatant,
    ClearCombatants,
    AddCondition,
    RemoveCondition,
    ClearConditions,
    StartCombat,
    AdvanceTurn,
    ResetCombat,
]
