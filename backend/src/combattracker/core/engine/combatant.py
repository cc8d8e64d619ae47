from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Literal, Optional, Type, Union

from combattracker.core.engine.conditions import ConditionSet

CombatantType = Literal["PC", "NPC", "Monster"]

Initiative = Union[int, float]


@dataclass(kw_only=True)
class Combatant:
    """Shared shape of every participant; the concrete class is the type tag."""

    TYPE: ClassVar[CombatantType]

    id: int
    name: str
    initiative: Initiative = 0
    ac: int
    current_hp: int
    max_hp: int

    save_strength: int = 0
    save_dexterity: int = 0
    save_constitution: int = 0
    save_intelligence: int = 0
    save_wisdom: int = 0
    save_charisma: int = 0

    notes: Optional[str] = None

    conditions: ConditionSet = field(default_factory=ConditionSet)

    @property
    def type(self) -> CombatantType:
        return self.TYPE

    @property
    def is_down(self) -> bool:
        return self.current_hp == 0

    def field_values(self) -> Dict[str, Any]:
        """Plain fields (without id and conditions) plus the type tag."""
        out: Dict[str, Any] = {"type": self.TYPE}
        for f in fields(self):
            if f.name in ("id", "conditions"):
                continue
            out[f.name] = getattr(self, f.name)
        return out


@dataclass(kw_only=True)
class PlayerCharacter(Combatant):
    TYPE: ClassVar[CombatantType] = "PC"

    character_class: str
    level: int


@dataclass(kw_only=True)
class NonPlayerCharacter(Combatant):
    TYPE: ClassVar[CombatantType] = "NPC"


@dataclass(kw_only=True)
class Monster(Combatant):
    TYPE: ClassVar[CombatantType] = "Monster"


VARIANTS: Dict[str, Type[Combatant]] = {
    "PC": PlayerCharacter,
    "NPC": NonPlayerCharacter,
    "Monster": Monster,
}


def variant_for(combatant_type: str) -> Type[Combatant]:
    return VARIANTS[combatant_type]


def build_combatant(
    combatant_id: int,
    values: Dict[str, Any],
    *,
    conditions: Optional[ConditionSet] = None,
) -> Combatant:
    """
    Instantiate the variant named by values["type"].

    Keys the variant does not declare (e.g. character_class on a Monster)
    are dropped. Values must already be validated.
    """
    cls = variant_for(values["type"])
    allowed = {f.name for f in fields(cls)} - {"id", "conditions"}
    kwargs = {k: v for k, v in values.items() if k in allowed}
    return cls(
        id=combatant_id,
        conditions=conditions if conditions is not None else ConditionSet(),
        **kwargs,
    )
