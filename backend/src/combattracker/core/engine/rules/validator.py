from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from combattracker.core.errors import ValidationError

COMBATANT_TYPES: Tuple[str, ...] = ("PC", "NPC", "Monster")

SAVE_FIELDS: Tuple[str, ...] = (
    "save_strength",
    "save_dexterity",
    "save_constitution",
    "save_intelligence",
    "save_wisdom",
    "save_charisma",
)

PC_FIELDS: Tuple[str, ...] = ("character_class", "level")

REQUIRED_FIELDS: Tuple[str, ...] = ("name", "type", "ac", "current_hp", "max_hp")

COMBATANT_FIELDS: Tuple[str, ...] = (
    "name",
    "type",
    "initiative",
    "ac",
    "current_hp",
    "max_hp",
    *SAVE_FIELDS,
    *PC_FIELDS,
    "notes",
)

INITIATIVE_RANGE = (-10, 50)
AC_RANGE = (0, 50)
HP_LIMIT = 9999
SAVE_RANGE = (-10, 20)
LEVEL_RANGE = (1, 20)

NAME_MAX = 255
CLASS_MAX = 100
NOTES_MAX = 5000

_LABELS: Dict[str, str] = {
    "name": "Name",
    "type": "Type",
    "initiative": "Initiative",
    "ac": "AC",
    "current_hp": "Current HP",
    "max_hp": "Max HP",
    "save_strength": "Strength save",
    "save_dexterity": "Dexterity save",
    "save_constitution": "Constitution save",
    "save_intelligence": "Intelligence save",
    "save_wisdom": "Wisdom save",
    "save_charisma": "Charisma save",
    "character_class": "Character class",
    "level": "Level",
    "notes": "Notes",
}


@dataclass
class FieldIssue:
    field: str
    message: str


@dataclass
class ValidationResult:
    ok: bool = True
    issues: List[FieldIssue] = field(default_factory=list)

    def add(self, field_name: str, message: str) -> None:
        self.ok = False
        self.issues.append(FieldIssue(field=field_name, message=message))

    def extend(self, other: "ValidationResult") -> None:
        for issue in other.issues:
            self.add(issue.field, issue.message)

    def raise_for_errors(self) -> None:
        if not self.ok:
            raise ValidationError(
                [i.message for i in self.issues],
                meta={"fields": sorted({i.field for i in self.issues})},
            )


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a checkbox value is never a stat
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        # arbitrary-size ints; the range checks bound them
        return True
    return math.isfinite(value)


def _check_number(
    value: Any,
    label: str,
    *,
    lo: Optional[float] = None,
    hi: Optional[float] = None,
    allow_float: bool = False,
) -> Optional[str]:
    if value is None:
        return f"{label} is required"
    if not _is_number(value):
        return f"{label} must be a valid number"
    if not allow_float and isinstance(value, float) and not value.is_integer():
        return f"{label} must be an integer"
    if lo is not None and value < lo:
        return f"{label} must be at least {lo}"
    if hi is not None and value > hi:
        return f"{label} must be at most {hi}"
    return None


def _check_string(
    value: Any, label: str, *, max_length: int, required: bool = True
) -> Optional[str]:
    if value is None:
        return f"{label} is required" if required else None
    if not isinstance(value, str):
        return f"{label} must be a string"
    stripped = value.strip()
    if required and not stripped:
        return f"{label} must not be empty"
    if len(stripped) > max_length:
        return f"{label} must be at most {max_length} characters"
    return None


def check_field(name: str, value: Any) -> Optional[str]:
    """Domain check of a single combatant field; returns the error message."""
    label = _LABELS.get(name, name)

    if name == "name":
        return _check_string(value, label, max_length=NAME_MAX)
    if name == "type":
        if value is None:
            return "Type is required"
        if value not in COMBATANT_TYPES:
            return f"Type must be one of: {', '.join(COMBATANT_TYPES)}"
        return None
    if name == "initiative":
        lo, hi = INITIATIVE_RANGE
        return _check_number(value, label, lo=lo, hi=hi, allow_float=True)
    if name == "ac":
        lo, hi = AC_RANGE
        return _check_number(value, label, lo=lo, hi=hi)
    if name == "current_hp":
        # out-of-range values are clamped by the store, only the type matters
        return _check_number(value, label)
    if name == "max_hp":
        return _check_number(value, label, lo=1, hi=HP_LIMIT)
    if name in SAVE_FIELDS:
        lo, hi = SAVE_RANGE
        return _check_number(value, label, lo=lo, hi=hi)
    if name == "character_class":
        return _check_string(value, label, max_length=CLASS_MAX)
    if name == "level":
        lo, hi = LEVEL_RANGE
        return _check_number(value, label, lo=lo, hi=hi)
    if name == "notes":
        return _check_string(value, label, max_length=NOTES_MAX, required=False)
    return f"Unknown field: {name}"


def validate_fields(
    data: Mapping[str, Any], *, required: Iterable[str] = ()
) -> ValidationResult:
    """
    Check every supplied field, plus presence of the required ones.

    All problems are collected; nothing stops at the first failure.
    """
    vr = ValidationResult()
    for name in required:
        if data.get(name) is None:
            vr.add(name, f"{_LABELS.get(name, name)} is required")

    for name, value in data.items():
        if value is None and name in required:
            continue
        if value is None and name not in REQUIRED_FIELDS and name in _LABELS:
            # optional field explicitly cleared
            continue
        msg = check_field(name, value)
        if msg is not None:
            vr.add(name, msg)
    return vr


def validate_variant(combatant_type: Any, data: Mapping[str, Any]) -> ValidationResult:
    """PC combatants must carry a class and a level."""
    vr = ValidationResult()
    if combatant_type != "PC":
        return vr
    for name in PC_FIELDS:
        if data.get(name) is None:
            vr.add(name, f"{_LABELS[name]} is required for PC combatants")
    return vr
