from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional

from combattracker.core.engine.combatant import (
    Combatant,
    build_combatant,
)
from combattracker.core.engine.rules.validator import (
    REQUIRED_FIELDS,
    SAVE_FIELDS,
    ValidationResult,
    validate_fields,
    validate_variant,
)
from combattracker.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = ("id", "conditions")
_INT_FIELDS = ("ac", "current_hp", "max_hp", "level", *SAVE_FIELDS)
_DEFAULT_ZERO = ("initiative", *SAVE_FIELDS)


def clamp_hp(current_hp: int, max_hp: int) -> int:
    return max(0, min(current_hp, max_hp))


@dataclass
class UpdateResult:
    combatant: Combatant
    changed: Dict[str, Any]
    previous_initiative: float
    hp_clamped: bool = False
    requested_hp: Optional[int] = None
    variant_changed: bool = False

    @property
    def initiative_changed(self) -> bool:
        return self.combatant.initiative != self.previous_initiative


def _normalize(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce already-validated input into stored form."""
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _DEFAULT_ZERO and value is None:
            value = 0
        elif key in ("name", "character_class") and isinstance(value, str):
            value = value.strip()
        elif key == "notes" and isinstance(value, str):
            value = value.strip() or None
        if key in _INT_FIELDS and isinstance(value, float):
            value = int(value)
        out[key] = value
    return out


class CombatantStore:
    """
    Arena of one encounter's combatants, keyed by id.

    The only place combatant records are created, changed or dropped; every
    write is validated in full before anything is touched.
    """

    def __init__(
        self,
        combatants: Optional[Mapping[int, Combatant]] = None,
        *,
        next_id: int = 1,
    ):
        self._combatants: Dict[int, Combatant] = dict(combatants or {})
        floor = max(self._combatants, default=0) + 1
        self._next_id = max(next_id, floor)

    @property
    def next_id(self) -> int:
        return self._next_id

    # ---------- reads ----------

    def find_by_id(self, combatant_id: int) -> Combatant:
        c = self._combatants.get(combatant_id)
        if c is None:
            raise NotFoundError("Combatant", combatant_id)
        return c

    def get(self, combatant_id: int) -> Optional[Combatant]:
        return self._combatants.get(combatant_id)

    def find_all(self, combatant_type: Optional[str] = None) -> List[Combatant]:
        items = sorted(self._combatants.values(), key=lambda c: c.id)
        if combatant_type is not None:
            items = [c for c in items if c.type == combatant_type]
        return items

    def __contains__(self, combatant_id: object) -> bool:
        return combatant_id in self._combatants

    def __len__(self) -> int:
        return len(self._combatants)

    def __iter__(self) -> Iterator[Combatant]:
        return iter(self.find_all())

    # ---------- writes ----------

    def create(self, data: Mapping[str, Any]) -> Combatant:
        vr = validate_fields(data, required=REQUIRED_FIELDS)
        vr.extend(validate_variant(data.get("type"), data))
        vr.raise_for_errors()

        values = _normalize(data)
        for key in _DEFAULT_ZERO:
            values.setdefault(key, 0)
        values["current_hp"] = clamp_hp(values["current_hp"], values["max_hp"])

        combatant_id = self._next_id
        self._next_id += 1
        combatant = build_combatant(combatant_id, values)
        self._combatants[combatant_id] = combatant

        logger.debug(
            "combatant created id=%s type=%s initiative=%s",
            combatant_id,
            combatant.type,
            combatant.initiative,
        )
        return combatant

    def update(self, combatant_id: int, changes: Mapping[str, Any]) -> UpdateResult:
        existing = self.find_by_id(combatant_id)

        if not changes:
            raise ValidationError(["No fields to update"])

        vr = ValidationResult()
        for key in _IMMUTABLE_FIELDS:
            if key in changes:
                vr.add(key, f"Field '{key}' cannot be updated")
        editable = {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}
        vr.extend(validate_fields(editable))
        if not vr.ok:
            vr.raise_for_errors()

        merged = existing.field_values()
        merged.update(_normalize(editable))
        vr.extend(validate_variant(merged["type"], merged))
        vr.raise_for_errors()

        requested_hp = merged["current_hp"]
        merged["current_hp"] = clamp_hp(requested_hp, merged["max_hp"])
        hp_clamped = merged["current_hp"] != requested_hp

        previous_initiative = existing.initiative
        variant_changed = merged["type"] != existing.type

        if variant_changed:
            combatant = build_combatant(
                combatant_id, merged, conditions=existing.conditions
            )
            self._combatants[combatant_id] = combatant
        else:
            combatant = existing
            for key in existing.field_values():
                if key != "type":
                    setattr(combatant, key, merged[key])

        declared = combatant.field_values()

        if hp_clamped:
            logger.debug(
                "current_hp clamped id=%s requested=%s stored=%s",
                combatant_id,
                requested_hp,
                combatant.current_hp,
            )

        return UpdateResult(
            combatant=combatant,
            changed={k: declared[k] for k in editable if k in declared},
            previous_initiative=previous_initiative,
            hp_clamped=hp_clamped,
            requested_hp=requested_hp,
            variant_changed=variant_changed,
        )

    def delete(self, combatant_id: int) -> Combatant:
        combatant = self.find_by_id(combatant_id)
        del self._combatants[combatant_id]
        combatant.conditions.clear()
        logger.debug("combatant deleted id=%s", combatant_id)
        return combatant
