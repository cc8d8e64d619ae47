from combattracker.core.errors import PersistenceError


def _add(client, encounter_id, **kw):
    body = {"name": "Goblin", "type": "Monster", "ac": 15, "current_hp": 7, "max_hp": 7}
    body.update(kw)
    r = client.post(f"/encounters/{encounter_id}/combatants", json=body)
    assert r.status_code == 201, r.text
    return r.json()["events_delta"][0]["payload"]["combatant_id"]


def test_fresh_encounter_state_is_idle(client, encounter_id):
    r = client.get(f"/encounters/{encounter_id}/state")

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["unsaved"] is False
    assert body["state"]["phase"] == "idle"
    assert body["state"]["order"] == []


def test_state_of_unknown_encounter_is_404(client):
    r = client.get("/encounters/nope/state")
    assert r.status_code == 404


def test_combatant_crud_and_order(client, encounter_id):
    b = _add(client, encounter_id, name="B", initiative=15)
    a = _add(client, encounter_id, name="A", initiative=10)
    c = _add(client, encounter_id, name="C", initiative=10)

    r = client.get(f"/encounters/{encounter_id}/state")
    assert r.json()["state"]["order"] == [b, a, c]

    r = client.patch(
        f"/encounters/{encounter_id}/combatants/{a}", json={"current_hp": -20}
    )
    assert r.status_code == 200, r.text
    assert [e["type"] for e in r.json()["events_delta"]] == [
        "CombatantUpdated",
        "HitPointsClamped",
    ]

    r = client.get(f"/encounters/{encounter_id}/combatants/{a}")
    assert r.json()["current_hp"] == 0
    assert r.json()["is_down"] is True

    r = client.delete(f"/encounters/{encounter_id}/combatants/{c}")
    assert r.status_code == 200
    r = client.get(f"/encounters/{encounter_id}/combatants/{c}")
    assert r.status_code == 404


def test_create_reports_all_violations(client, encounter_id):
    r = client.post(
        f"/encounters/{encounter_id}/combatants",
        json={"name": "Aria", "type": "PC", "ac": 60, "current_hp": 10, "max_hp": 10},
    )

    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "VALIDATION_ERROR"
    assert set(err["messages"]) == {
        "AC must be at most 50",
        "Character class is required for PC combatants",
        "Level is required for PC combatants",
    }


def test_list_combatants_filter_by_type(client, encounter_id):
    _add(client, encounter_id, name="Orc")
    _add(
        client,
        encounter_id,
        name="Aria",
        type="PC",
        character_class="Bard",
        level=3,
    )

    r = client.get(f"/encounters/{encounter_id}/combatants", params={"type": "PC"})
    assert r.status_code == 200
    assert [c["name"] for c in r.json()] == ["Aria"]
    assert r.json()[0]["level"] == 3

    r = client.get(f"/encounters/{encounter_id}/combatants")
    assert len(r.json()) == 2


def test_conditions_endpoints(client, encounter_id):
    cid = _add(client, encounter_id)
    base = f"/encounters/{encounter_id}/combatants/{cid}/conditions"

    assert client.post(base, json={"condition": "Prone"}).status_code == 200
    assert client.post(base, json={"condition": "stunned"}).status_code == 200
    assert client.get(base).json() == {
        "combatant_id": cid,
        "conditions": ["prone", "stunned"],
    }

    r = client.post(base, json={"condition": "not-a-condition"})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "UNKNOWN_CONDITION"

    assert client.delete(f"{base}/prone").status_code == 200
    assert client.get(base).json()["conditions"] == ["stunned"]

    r = client.delete(base)
    assert r.json()["events_delta"][0]["type"] == "ConditionsCleared"
    assert client.get(base).json()["conditions"] == []


def test_turn_flow(client, encounter_id):
    x = _add(client, encounter_id, name="X", initiative=30)
    y = _add(client, encounter_id, name="Y", initiative=20)
    z = _add(client, encounter_id, name="Z", initiative=10)

    r = client.post(f"/encounters/{encounter_id}/turns:advance")
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "INVALID_STATE"

    r = client.post(f"/encounters/{encounter_id}/turns:start")
    assert r.status_code == 200
    assert r.json()["state"]["cursor"] == x

    r = client.post(
        f"/encounters/{encounter_id}/turns:advance",
        json={"expected_turn_owner_id": x},
    )
    assert r.json()["state"]["cursor"] == y

    client.delete(f"/encounters/{encounter_id}/combatants/{y}")
    r = client.delete(f"/encounters/{encounter_id}/combatants/{z}")
    state = r.json()["state"]
    assert (state["cursor"], state["round"]) == (x, 2)

    r = client.post(f"/encounters/{encounter_id}/turns:reset")
    assert r.json()["state"]["phase"] == "idle"
    assert r.json()["state"]["round"] == 0


def test_clear_combatants_ends_combat(client, encounter_id):
    _add(client, encounter_id, initiative=5)
    client.post(f"/encounters/{encounter_id}/turns:start")

    r = client.post(f"/encounters/{encounter_id}/combatants:clear")

    assert r.status_code == 200
    assert r.json()["state"]["phase"] == "ended"
    assert r.json()["state"]["combatants"] == {}
    assert client.post(f"/encounters/{encounter_id}/turns:start").status_code == 409


def test_apply_raw_command(client, encounter_id):
    r = client.post(
        f"/encounters/{encounter_id}/commands:apply",
        json={
            "command": {
                "type": "CreateCombatant",
                "data": {"name": "Wolf", "type": "Monster", "initiative": 14,
                         "ac": 13, "current_hp": 11, "max_hp": 11},
            },
            "label": "wolf",
        },
    )
    assert r.status_code == 200, r.text
    assert r.json()["save_id"] is not None
    assert r.json()["events_delta"][0]["type"] == "CombatantCreated"


def test_apply_malformed_command_is_422(client, encounter_id):
    r = client.post(
        f"/encounters/{encounter_id}/commands:apply",
        json={"command": {"type": "CastFireball", "level": 3}},
    )

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_persistence_failure_is_503_and_retry_recovers(client, encounter_id, runtime, monkeypatch):
    _add(client, encounter_id, name="Keeper")

    gateway = runtime._gateway
    real_save = gateway.save_encounter

    def broken_save(*args, **kwargs):
        raise PersistenceError("database is locked", operation="save", encounter_id=encounter_id)

    monkeypatch.setattr(gateway, "save_encounter", broken_save)
    r = client.post(f"/encounters/{encounter_id}/turns:start")
    assert r.status_code == 503
    assert r.json()["error"]["code"] == "PERSISTENCE_ERROR"

    r = client.get(f"/encounters/{encounter_id}/state")
    assert r.json()["unsaved"] is True
    assert r.json()["state"]["phase"] == "active"

    monkeypatch.setattr(gateway, "save_encounter", real_save)
    r = client.post(f"/encounters/{encounter_id}/state:save")
    assert r.status_code == 200, r.text
    assert [e["type"] for e in r.json()["events_delta"]] == [
        "CombatStarted",
        "RoundStarted",
        "TurnStarted",
    ]
    assert client.get(f"/encounters/{encounter_id}/state").json()["unsaved"] is False


def test_huge_integer_field_is_422_not_500(client, encounter_id):
    r = client.post(
        f"/encounters/{encounter_id}/combatants",
        json={"name": "Ogre", "type": "Monster", "ac": 10**400,
              "current_hp": 5, "max_hp": 5},
    )

    assert r.status_code == 422, r.text
    err = r.json()["error"]
    assert err["code"] == "VALIDATION_ERROR"
    assert err["messages"] == ["AC must be at most 50"]
    assert err["meta"]["fields"] == ["ac"]

    cid = _add(client, encounter_id)
    r = client.patch(
        f"/encounters/{encounter_id}/combatants/{cid}", json={"max_hp": 10**400}
    )
    assert r.status_code == 422
    assert r.json()["error"]["messages"] == ["Max HP must be at most 9999"]
