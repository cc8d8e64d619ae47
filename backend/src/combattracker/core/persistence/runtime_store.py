from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from combattracker.core.engine.state import EncounterState
from combattracker.core.errors import NotFoundError, PersistenceError, TrackerError
from combattracker.core.persistence.state_codec import (
    encounter_state_from_dict,
    encounter_state_to_dict,
)
from combattracker.db.models import Encounter, EncounterSave

logger = logging.getLogger(__name__)


# ---------- snapshot rows ----------


def load_latest_snapshot(
    db: Session, encounter_id: str
) -> Tuple[Optional[int], Optional[EncounterState], List[Dict[str, Any]]]:
    """(save_id, state, events) of the newest snapshot, or (None, None, [])."""
    row = db.execute(
        select(EncounterSave)
        .where(EncounterSave.encounter_id == encounter_id)
        .order_by(EncounterSave.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if row is None:
        return None, None, []

    state = encounter_state_from_dict(json.loads(row.state_json))
    events = json.loads(row.events_json or "[]")
    if not isinstance(events, list):
        events = []
    return int(row.id), state, events


def save_snapshot(
    db: Session,
    *,
    encounter_id: str,
    label: Optional[str],
    state: EncounterState,
    events_delta: List[Dict[str, Any]],
) -> EncounterSave:
    row = EncounterSave(
        encounter_id=encounter_id,
        label=label,
        state_json=json.dumps(encounter_state_to_dict(state)),
        events_json=json.dumps(events_delta, default=str),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# ---------- gateway ----------


class EncounterGateway(Protocol):
    def load_encounter(self, encounter_id: str) -> Optional[EncounterState]: ...

    def save_encounter(
        self,
        encounter_id: str,
        state: EncounterState,
        events: List[Dict[str, Any]],
        *,
        label: Optional[str] = None,
    ) -> int: ...


class SqlEncounterGateway:
    """
    Snapshot-per-save persistence on top of SQLAlchemy.

    Each save appends a row; load returns the newest one. Database and
    decoding failures come out as PersistenceError, a missing encounter row
    as NotFoundError.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load_encounter(self, encounter_id: str) -> Optional[EncounterState]:
        try:
            with self._session_factory() as db:
                if db.get(Encounter, encounter_id) is None:
                    raise NotFoundError("Encounter", encounter_id)
                _save_id, state, _events = load_latest_snapshot(db, encounter_id)
                return state
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(
                "snapshot load failed", extra={"encounter_id": encounter_id}
            )
            raise PersistenceError(
                str(e), operation="load", encounter_id=encounter_id
            ) from e
        except (TrackerError, ValueError, TypeError, KeyError) as e:
            logger.error(
                "snapshot decode failed", extra={"encounter_id": encounter_id}
            )
            raise PersistenceError(
                f"corrupt snapshot: {e}", operation="decode", encounter_id=encounter_id
            ) from e

    def save_encounter(
        self,
        encounter_id: str,
        state: EncounterState,
        events: List[Dict[str, Any]],
        *,
        label: Optional[str] = None,
    ) -> int:
        try:
            with self._session_factory() as db:
                row = save_snapshot(
                    db,
                    encounter_id=encounter_id,
                    label=label,
                    state=state,
                    events_delta=events,
                )
                return int(row.id)
        except SQLAlchemyError as e:
            logger.error(
                "snapshot save failed", extra={"encounter_id": encounter_id}
            )
            raise PersistenceError(
                str(e), operation="save", encounter_id=encounter_id
            ) from e
