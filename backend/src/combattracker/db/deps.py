from __future__ import annotations

from typing import Iterator

from sqlalchemy.orm import Session

import combattracker.db.session as db_session


def get_db() -> Iterator[Session]:
    # looked up at call time so tests can swap SessionLocal
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()
