import pytest
from fastapi.testclient import TestClient

from onboarding_allocator import api


@pytest.fixture
def client(solver):
    api.app.dependency_overrides[api.get_solver] = lambda: solver
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


def test_solve_and_fetch(client, sample_candidates):
    response = client.post("/api/solve", json={
        "candidates": sample_candidates,
        "capacities": {"g1": 2},
        "filters": {"focuses": ["acting"]},
    })
    assert response.status_code == 200
    solution = response.json()["solution"]
    assert solution["assignments"] == {"g1": ["c01", "c04"]}
    assert solution["excluded"] == {"c02": ["focuses"], "c03": ["focuses"]}

    response = client.get(f"/api/solutions/{solution['id']}")
    assert response.status_code == 200
    assert response.json()["solution"] == solution


def test_solve_uses_configured_pool(client, solver, candidates_json, monkeypatch):
    monkeypatch.setitem(solver.config, "candidates_path", str(candidates_json))

    response = client.post("/api/solve", json={"capacities": {"g1": 10}})
    assert response.status_code == 200
    assert len(response.json()["solution"]["assignments"]["g1"]) == 4


def test_missing_pool_is_a_validation_error(client, solver, tmp_path, monkeypatch):
    monkeypatch.setitem(solver.config, "candidates_path", str(tmp_path / "none.json"))

    response = client.post("/api/solve", json={"capacities": {"g1": 1}})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_error_codes(client, sample_candidates):
    response = client.post("/api/solve", json={"candidates": sample_candidates, "capacities": {"g1": 0}})
    assert response.status_code == 400
    assert response.json()["error"] == "no_capacity"

    response = client.post("/api/solve", json={"candidates": sample_candidates, "capacities": {"g1": -2}})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"

    response = client.post("/api/solve", json={
        "candidates": sample_candidates,
        "capacities": {"g1": 1},
        "groupFilters": {"g2": {"focuses": ["tech"]}},
    })
    assert response.status_code == 400
    assert "unknown group" in response.json()["detail"]

    response = client.get("/api/solutions/does-not-exist")
    assert response.status_code == 404


def test_conflicts_endpoint(client, sample_candidates):
    solution = client.post("/api/solve", json={
        "candidates": sample_candidates,
        "capacities": {"g1": 3},
    }).json()["solution"]
    assert solution["assignments"]["g1"] == ["c01", "c02", "c03"]

    response = client.post(f"/api/solutions/{solution['id']}/conflicts", json={
        "candidates": sample_candidates,
        "capacities": {"g1": 1},
    })
    assert response.status_code == 200
    conflicts = response.json()["conflicts"]
    assert [c["candidateId"] for c in conflicts] == ["c03", "c02"]
    assert all(c["reason"] == "capacity_exceeded" for c in conflicts)

    response = client.post("/api/solutions/unknown/conflicts", json={"candidates": sample_candidates})
    assert response.status_code == 404


def test_conflicts_against_other_solutions(client, sample_candidates):
    first = client.post("/api/solve", json={"candidates": sample_candidates, "capacities": {"g1": 1}}).json()["solution"]
    second = client.post("/api/solve", json={"candidates": sample_candidates, "capacities": {"g2": 1}}).json()["solution"]

    response = client.post(f"/api/solutions/{first['id']}/conflicts", json={
        "candidates": sample_candidates,
        "otherSolutionIds": [second["id"]],
    })
    assert [c["reason"] for c in response.json()["conflicts"]] == ["double_booked"]


def test_config_and_reasons(client):
    config = client.get("/api/config").json()
    assert config["strategy"] == "greedy"

    reasons = client.get("/api/reasons").json()
    assert set(reasons["reasons"]) == {"capacity_exceeded", "no_longer_eligible", "double_booked"}
    assert "documentStatuses" in reasons["filters"]


def test_unknown_other_solution_is_a_bad_request(client, sample_candidates):
    solution = client.post("/api/solve", json={"candidates": sample_candidates, "capacities": {"g1": 1}}).json()["solution"]

    response = client.post(f"/api/solutions/{solution['id']}/conflicts", json={
        "candidates": sample_candidates,
        "otherSolutionIds": ["gone"],
    })
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert "gone" in response.json()["detail"]


@pytest.mark.parametrize("extra", [
    {"filters": {"focuses": 5}},
    {"fairness": {"gender": ["female"]}},
    {"fairness": {"experience": 2}},
    {"groupDomains": {"g1": "lighting"}},
])
def test_malformed_payload_parts_are_bad_requests(client, sample_candidates, extra):
    body = {"candidates": sample_candidates, "capacities": {"g1": 1}}
    body.update(extra)

    response = client.post("/api/solve", json=body)
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_solve_reports_seat_alternatives(client, sample_candidates):
    response = client.post("/api/solve", json={
        "candidates": sample_candidates,
        "capacities": {"crew": 1},
        "groupDomains": {"crew": "tech"},
    })
    metrics = response.json()["solution"]["metrics"]

    seat = metrics["seats"]["crew"][0]
    assert seat["candidateId"] == "c02"
    assert seat["alternatives"][0] == {"candidateId": "c03", "score": -0.04, "delta": 0.04}
    assert metrics["closeCalls"][0]["candidateIds"] == ["c02", "c03", "c01"]
