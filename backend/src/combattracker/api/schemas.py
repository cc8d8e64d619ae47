from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from combattracker.core.engine.combatant import Combatant, CombatantType


# ---- encounters ----


class EncounterCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)


class EncounterOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


# ---- runtime ----


class EncounterRuntimeResponse(BaseModel):
    encounter_id: str
    # None only when nothing has been saved yet
    save_id: Optional[int] = None
    state: Dict[str, Any]
    events_delta: List[Dict[str, Any]] = Field(default_factory=list)


class EncounterStateResponse(BaseModel):
    encounter_id: str
    state: Dict[str, Any]
    # True while the last mutation is held in memory only
    unsaved: bool = False


class ApplyCommandRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # parsed against the Command union by the router
    command: Dict[str, Any]
    label: Optional[str] = None


class ConditionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    condition: str


class AdvanceTurnRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expected_turn_owner_id: Optional[int] = None


# ---- combatants ----
# Create/update bodies are plain JSON objects: field domains are checked by
# the store so that every violation is reported at once.


class CombatantOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    type: CombatantType
    name: str
    initiative: Union[int, float]
    ac: int
    current_hp: int
    max_hp: int

    save_strength: int
    save_dexterity: int
    save_constitution: int
    save_intelligence: int
    save_wisdom: int
    save_charisma: int

    character_class: Optional[str] = None
    level: Optional[int] = None
    notes: Optional[str] = None

    conditions: List[str] = Field(default_factory=list)
    is_down: bool = False

    @classmethod
    def from_combatant(cls, c: Combatant) -> "CombatantOut":
        return cls(
            id=c.id,
            conditions=sorted(c.conditions),
            is_down=c.is_down,
            **c.field_values(),
        )


class ConditionsOut(BaseModel):
    combatant_id: int
    conditions: List[str]
