from fastapi.testclient import TestClient


def _create_tournament(client: TestClient, **overrides):
    payload = {"name": "Spring Open", "entrant_kind": "individual", "capacity": 4}
    payload.update(overrides)
    return client.post("/api/tournaments", json=payload)


def _create_player(client: TestClient, name: str, ranking: float) -> int:
    response = client.post("/api/players", json={"name": name, "ranking": ranking})
    assert response.status_code == 201
    return response.json()["id"]


def test_create_tournament(client: TestClient):
    response = _create_tournament(client, notes="Outdoor courts")

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Spring Open"
    assert data["capacity"] == 4
    assert data["total_rounds"] == 2
    assert data["bracket_mode"] == "full"
    assert data["bracket_built_at"] is None


def test_tournament_capacity_must_be_power_of_two(client: TestClient):
    assert _create_tournament(client, capacity=6).status_code == 422
    assert _create_tournament(client, capacity=1).status_code == 422


def test_tournament_name_required(client: TestClient):
    assert _create_tournament(client, name="   ").status_code == 422


def test_list_and_get_tournament(client: TestClient):
    created = _create_tournament(client).json()
    _create_tournament(client, name="Fall Classic", entrant_kind="pair", capacity=8)

    listing = client.get("/api/tournaments").json()
    assert [t["name"] for t in listing] == ["Spring Open", "Fall Classic"]

    response = client.get(f"/api/tournaments/{created['id']}")
    assert response.status_code == 200
    assert response.json()["entrant_kind"] == "individual"

    assert client.get("/api/tournaments/999").status_code == 404


def test_update_tournament_before_build(client: TestClient):
    tid = _create_tournament(client).json()["id"]
    response = client.put(f"/api/tournaments/{tid}", json={"capacity": 8, "notes": "Expanded"})
    assert response.status_code == 200
    assert response.json()["capacity"] == 8
    assert response.json()["notes"] == "Expanded"


def test_create_players_and_entrants(client: TestClient):
    a = _create_player(client, "Ada", 3.0)
    b = _create_player(client, "Bea", 5.0)

    solo = client.post("/api/entrants", json={"kind": "individual", "player_a_id": a})
    assert solo.status_code == 201
    assert solo.json()["name"] == "Ada"
    assert solo.json()["effective_ranking"] == 3.0

    pair = client.post("/api/entrants", json={"kind": "pair", "player_a_id": a, "player_b_id": b})
    assert pair.status_code == 201
    assert pair.json()["name"] == "Ada & Bea"
    assert pair.json()["effective_ranking"] == 4.0

    assert len(client.get("/api/entrants").json()) == 2
    assert [p["name"] for p in client.get("/api/players").json()] == ["Ada", "Bea"]


def test_entrant_member_validation(client: TestClient):
    a = _create_player(client, "Ada", 3.0)
    assert client.post("/api/entrants", json={"kind": "pair", "player_a_id": a}).status_code == 422
    assert (
        client.post("/api/entrants", json={"kind": "individual", "player_a_id": a, "player_b_id": a}).status_code
        == 422
    )
    assert client.post("/api/entrants", json={"kind": "individual", "player_a_id": 404}).status_code == 404


def test_registrations(client: TestClient):
    tid = _create_tournament(client, capacity=2).json()["id"]
    entrant_ids = []
    for i in range(3):
        pid = _create_player(client, f"Player {i}", float(i))
        entrant_ids.append(client.post("/api/entrants", json={"kind": "individual", "player_a_id": pid}).json()["id"])

    first = client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": entrant_ids[0], "position": 1})
    assert first.status_code == 201

    duplicate = client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": entrant_ids[0]})
    assert duplicate.status_code == 409

    taken = client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": entrant_ids[1], "position": 1})
    assert taken.status_code == 409

    assert client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": entrant_ids[1]}).status_code == 201

    full = client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": entrant_ids[2]})
    assert full.status_code == 422

    listing = client.get(f"/api/tournaments/{tid}/registrations").json()
    assert [r["entrant_id"] for r in listing] == entrant_ids[:2]


def test_registration_kind_must_match(client: TestClient):
    tid = _create_tournament(client, entrant_kind="pair").json()["id"]
    pid = _create_player(client, "Solo", 1.0)
    eid = client.post("/api/entrants", json={"kind": "individual", "player_a_id": pid}).json()["id"]

    response = client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": eid})
    assert response.status_code == 422


def test_delete_tournament_removes_children(client: TestClient):
    tid = _create_tournament(client, capacity=2).json()["id"]
    for i in range(2):
        pid = _create_player(client, f"Player {i}", float(i))
        eid = client.post("/api/entrants", json={"kind": "individual", "player_a_id": pid}).json()["id"]
        client.post(f"/api/tournaments/{tid}/registrations", json={"entrant_id": eid})
    assert client.post(f"/api/tournaments/{tid}/bracket").status_code == 201

    assert client.delete(f"/api/tournaments/{tid}").status_code == 204
    assert client.get(f"/api/tournaments/{tid}").status_code == 404
    assert client.delete(f"/api/tournaments/{tid}").status_code == 404
