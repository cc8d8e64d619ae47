from __future__ import annotations

import threading
from typing import Optional

from sqlalchemy.orm import Session

import combattracker.db.session as db_session
from combattracker.core.persistence.runtime_store import SqlEncounterGateway
from combattracker.core.runtime import EncounterRuntime

_runtime: Optional[EncounterRuntime] = None
_runtime_lock = threading.Lock()


def _open_session() -> Session:
    # resolved per call so a swapped SessionLocal is honoured
    return db_session.SessionLocal()


def get_runtime() -> EncounterRuntime:
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = EncounterRuntime(SqlEncounterGateway(_open_session))
        return _runtime
