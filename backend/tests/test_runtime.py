import threading

import pytest

from combattracker.core.engine.commands import AdvanceTurn, CreateCombatant, StartCombat
from combattracker.core.errors import NotFoundError, PersistenceError
from combattracker.core.persistence.runtime_store import load_latest_snapshot
from combattracker.core.runtime import EncounterRuntime
from combattracker.db.models import Encounter


class MemoryGateway:
    def __init__(self):
        self.saves = []
        self.fail_saves = False

    def load_encounter(self, encounter_id):
        return None

    def save_encounter(self, encounter_id, state, events, *, label=None):
        if self.fail_saves:
            raise PersistenceError("disk full", operation="save", encounter_id=encounter_id)
        self.saves.append((encounter_id, state.seq, list(events), label))
        return len(self.saves)


def _goblin(initiative=10):
    return CreateCombatant(
        data={"name": "Goblin", "type": "Monster", "initiative": initiative,
              "ac": 15, "current_hp": 7, "max_hp": 7}
    )


def test_every_mutation_is_saved():
    gw = MemoryGateway()
    rt = EncounterRuntime(gw)

    res = rt.execute("enc-1", _goblin())
    rt.execute("enc-1", StartCombat(), label="go")

    assert res.save_id == 1
    assert [s[3] for s in gw.saves] == ["CreateCombatant", "go"]
    assert gw.saves[1][2][0]["type"] == "CombatStarted"


def test_failed_save_keeps_memory_state_and_retry_flushes_events():
    gw = MemoryGateway()
    rt = EncounterRuntime(gw)
    rt.execute("enc-1", _goblin())

    gw.fail_saves = True
    with pytest.raises(PersistenceError):
        rt.execute("enc-1", _goblin(12))

    # not rolled back
    assert len(rt.snapshot("enc-1")["combatants"]) == 2
    assert rt.is_dirty("enc-1")

    gw.fail_saves = False
    res = rt.retry_save("enc-1")

    assert not rt.is_dirty("enc-1")
    assert res.save_id == 2
    _, _, events, label = gw.saves[-1]
    assert label == "retry"
    assert [e["type"] for e in events] == ["CombatantCreated"]


def test_unsaved_events_ride_along_with_next_save():
    gw = MemoryGateway()
    rt = EncounterRuntime(gw)
    rt.execute("enc-1", _goblin())

    gw.fail_saves = True
    with pytest.raises(PersistenceError):
        rt.execute("enc-1", StartCombat())
    gw.fail_saves = False

    rt.execute("enc-1", AdvanceTurn())

    types = [e["type"] for e in gw.saves[-1][2]]
    assert types == ["CombatStarted", "RoundStarted", "TurnStarted", "RoundStarted", "TurnStarted"]


def test_encounters_are_isolated():
    rt = EncounterRuntime(MemoryGateway())
    rt.execute("a", _goblin())

    assert rt.snapshot("b")["combatants"] == {}
    assert len(rt.snapshot("a")["combatants"]) == 1


def test_concurrent_creates_get_distinct_ids():
    rt = EncounterRuntime(MemoryGateway())

    def worker():
        for _ in range(25):
            rt.execute("enc-1", _goblin())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snap = rt.snapshot("enc-1")
    assert len(snap["combatants"]) == 100
    assert sorted(snap["order"]) == list(range(1, 101))
    assert snap["seq"] == 100


def test_sql_gateway_round_trip(runtime, TestingSessionLocal):
    with TestingSessionLocal() as db:
        enc = Encounter(name="Crypt")
        db.add(enc)
        db.commit()
        enc_id = enc.id

    runtime.execute(enc_id, _goblin(18))
    runtime.execute(enc_id, StartCombat())

    with TestingSessionLocal() as db:
        save_id, state, events = load_latest_snapshot(db, enc_id)

    assert save_id is not None
    assert state.phase == "active"
    assert state.turn_owner_id == 1
    assert [e["type"] for e in events] == ["CombatStarted", "RoundStarted", "TurnStarted"]

    runtime.forget(enc_id)
    assert runtime.snapshot(enc_id)["round"] == 1


def test_sql_gateway_unknown_encounter(runtime):
    with pytest.raises(NotFoundError):
        runtime.snapshot("no-such-encounter")


class KnownOnlyGateway(MemoryGateway):
    def __init__(self, known):
        super().__init__()
        self.known = set(known)

    def load_encounter(self, encounter_id):
        if encounter_id not in self.known:
            raise NotFoundError("Encounter", encounter_id)
        return None


def test_unknown_encounter_leaves_no_lock_behind():
    rt = EncounterRuntime(KnownOnlyGateway(["real"]))

    for i in range(20):
        with pytest.raises(NotFoundError):
            rt.snapshot(f"ghost-{i}")
    rt.execute("real", _goblin())

    assert rt.known_encounters() == ["real"]


def test_forget_drops_lock_and_state():
    rt = EncounterRuntime(MemoryGateway())
    rt.execute("enc-1", _goblin())

    rt.forget("enc-1")

    assert rt.known_encounters() == []
    assert rt.snapshot("enc-1")["combatants"] == {}


def test_snapshot_and_unsaved_flag_are_read_together():
    gw = MemoryGateway()
    rt = EncounterRuntime(gw)
    rt.execute("enc-1", _goblin())

    gw.fail_saves = True
    with pytest.raises(PersistenceError):
        rt.execute("enc-1", StartCombat())

    state, unsaved = rt.snapshot_with_status("enc-1")
    assert unsaved is True
    assert state["phase"] == "active"

    gw.fail_saves = False
    rt.retry_save("enc-1")
    state, unsaved = rt.snapshot_with_status("enc-1")
    assert (state["phase"], unsaved) == ("active", False)
