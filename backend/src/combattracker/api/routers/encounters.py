from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from combattracker.api.schemas import EncounterCreate, EncounterOut
from combattracker.core.errors import NotFoundError
from combattracker.db.deps import get_db
from combattracker.db.models import Encounter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/encounters", tags=["encounters"])


def _out(obj: Encounter) -> EncounterOut:
    return EncounterOut(
        id=obj.id,
        name=obj.name,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


@router.get("", response_model=list[EncounterOut])
def list_encounters(db: Session = Depends(get_db)):
    items = db.query(Encounter).order_by(Encounter.created_at.desc()).all()
    return [_out(e) for e in items]


@router.get("/{encounter_id}", response_model=EncounterOut)
def get_encounter(encounter_id: str, db: Session = Depends(get_db)):
    obj = db.get(Encounter, encounter_id)
    if not obj:
        raise NotFoundError("Encounter", encounter_id)
    return _out(obj)


@router.post("", response_model=EncounterOut, status_code=201)
def create_encounter(payload: EncounterCreate, db: Session = Depends(get_db)):
    obj = Encounter(name=payload.name)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    logger.info("encounter created", extra={"encounter_id": obj.id})
    return _out(obj)
