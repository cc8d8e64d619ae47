def test_encounters_create_list_and_get(client):
    r = client.post("/encounters", json={"name": "Bridge fight"})
    assert r.status_code == 201, r.text
    enc = r.json()

    r = client.get("/encounters")
    assert r.status_code == 200
    assert [e["id"] for e in r.json()] == [enc["id"]]

    r = client.get(f"/encounters/{enc['id']}")
    assert r.status_code == 200
    assert r.json()["name"] == "Bridge fight"


def test_unknown_encounter_is_404_envelope(client):
    r = client.get("/encounters/missing")

    assert r.status_code == 404
    err = r.json()["error"]
    assert err["code"] == "NOT_FOUND"
    assert err["meta"] == {"resource": "Encounter", "id": "missing"}


def test_create_encounter_body_validation(client):
    r = client.post("/encounters", json={"name": ""})

    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "VALIDATION_ERROR"
    assert err["details"][0]["field"] == "body.name"


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
