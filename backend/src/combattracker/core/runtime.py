"""
In-process home of live encounters.

One lock per encounter serialises every operation on it; reads take the
same lock so they never see a half-applied command. Different encounters
never contend. After each successful command the state is saved through the
gateway; if that save fails the in-memory state stays as it is, the
encounter is marked dirty and the PersistenceError goes to the caller, who
may call retry_save().
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from combattracker.core.engine.commands import Command
from combattracker.core.engine.rules.apply import apply_command
from combattracker.core.engine.state import EncounterState
from combattracker.core.errors import NotFoundError, PersistenceError
from combattracker.core.persistence.runtime_store import EncounterGateway
from combattracker.core.persistence.state_codec import encounter_state_to_dict

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RuntimeResult:
    encounter_id: str
    save_id: Optional[int]
    state: Dict[str, Any]
    events_delta: List[Dict[str, Any]] = field(default_factory=list)


class EncounterRuntime:
    def __init__(self, gateway: EncounterGateway):
        self._gateway = gateway
        self._states: Dict[str, EncounterState] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        # encounter_id -> events not yet persisted
        self._unsaved: Dict[str, List[Dict[str, Any]]] = {}

    def _lock_for(self, encounter_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(encounter_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[encounter_id] = lock
            return lock

    @contextmanager
    def _locked(self, encounter_id: str) -> Iterator[None]:
        while True:
            lock = self._lock_for(encounter_id)
            with lock:
                # the lock may have been dropped while we waited for it
                with self._registry_lock:
                    current = self._locks.get(encounter_id)
                if current is lock:
                    yield
                    return

    def _state(self, encounter_id: str) -> EncounterState:
        # caller holds the encounter lock
        state = self._states.get(encounter_id)
        if state is None:
            try:
                state = self._gateway.load_encounter(encounter_id) or EncounterState()
            except NotFoundError:
                # no lock entries for ids that were never real encounters
                with self._registry_lock:
                    self._locks.pop(encounter_id, None)
                raise
            self._states[encounter_id] = state
        return state

    def _persist(
        self,
        encounter_id: str,
        state: EncounterState,
        events: List[Dict[str, Any]],
        label: Optional[str],
    ) -> int:
        pending = self._unsaved.get(encounter_id, []) + events
        try:
            save_id = self._gateway.save_encounter(
                encounter_id, state, pending, label=label
            )
        except PersistenceError:
            self._unsaved[encounter_id] = pending
            logger.error(
                "encounter left unsaved in memory",
                extra={"encounter_id": encounter_id},
            )
            raise
        self._unsaved.pop(encounter_id, None)
        return save_id

    # ---------- public ----------

    def execute(
        self, encounter_id: str, cmd: Command, *, label: Optional[str] = None
    ) -> RuntimeResult:
        with self._locked(encounter_id):
            state = self._state(encounter_id)
            state, events = apply_command(state, cmd)
            logger.debug(
                "command applied",
                extra={"encounter_id": encounter_id, "command": cmd.type},
            )
            save_id = self._persist(encounter_id, state, events, label or cmd.type)
            return RuntimeResult(
                encounter_id=encounter_id,
                save_id=save_id,
                state=encounter_state_to_dict(state),
                events_delta=events,
            )

    def read(self, encounter_id: str, fn: Callable[[EncounterState], T]) -> T:
        """Run fn against a consistent view; fn must not keep references."""
        with self._locked(encounter_id):
            return fn(self._state(encounter_id))

    def snapshot(self, encounter_id: str) -> Dict[str, Any]:
        return self.read(encounter_id, encounter_state_to_dict)

    def snapshot_with_status(self, encounter_id: str) -> Tuple[Dict[str, Any], bool]:
        """Snapshot plus whether it is still unsaved, taken under one lock."""
        with self._locked(encounter_id):
            state = self._state(encounter_id)
            return encounter_state_to_dict(state), encounter_id in self._unsaved

    def is_dirty(self, encounter_id: str) -> bool:
        with self._locked(encounter_id):
            return encounter_id in self._unsaved

    def known_encounters(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._locks)

    def retry_save(
        self, encounter_id: str, *, label: Optional[str] = "retry"
    ) -> RuntimeResult:
        with self._locked(encounter_id):
            state = self._state(encounter_id)
            events = list(self._unsaved.get(encounter_id, []))
            save_id = self._persist(encounter_id, state, [], label)
            return RuntimeResult(
                encounter_id=encounter_id,
                save_id=save_id,
                state=encounter_state_to_dict(state),
                events_delta=events,
            )

    def forget(self, encounter_id: str) -> None:
        """Drop the cached state and lock; the next access reloads from the gateway."""
        with self._locked(encounter_id):
            self._states.pop(encounter_id, None)
            self._unsaved.pop(encounter_id, None)
            with self._registry_lock:
                self._locks.pop(encounter_id, None)
