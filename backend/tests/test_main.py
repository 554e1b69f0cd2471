from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_PASSWORD, STACY_PASSWORD
from timetracker.auth import create_access_token

API = "/api/v1"


def sign_in(client: TestClient, username: str, password: str):
    return client.post(f"{API}/auth/sign-in", json={"username": username, "password": password})


def bearer(client: TestClient, username: str, password: str) -> dict:
    token = sign_in(client, username, password).json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client: TestClient) -> dict:
    return bearer(client, "admin@example.com", ADMIN_PASSWORD)


@pytest.fixture
def stacy_headers(client: TestClient) -> dict:
    return bearer(client, "stacy@example.com", STACY_PASSWORD)


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


def test_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Job Time Tracker API"


def test_sign_in_issues_token(client: TestClient):
    response = sign_in(client, "stacy@example.com", STACY_PASSWORD)
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["user"]["id"] == "u-stacy"
    assert "password_hash" not in data["user"]


def test_token_form_login(client: TestClient):
    response = client.post(f"{API}/auth/token", data={"username": "admin@example.com", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "admin"


def test_session_follows_the_token(client: TestClient, stacy_headers, admin_headers):
    assert client.get(f"{API}/auth/session", headers=stacy_headers).json()["username"] == "stacy@example.com"
    assert client.get(f"{API}/auth/session", headers=admin_headers).json()["username"] == "admin@example.com"
    assert client.get(f"{API}/auth/session").status_code == 401

    response = client.post(f"{API}/auth/sign-out", headers=stacy_headers)
    assert response.json()["signed_out"] is True


def test_sign_in_does_not_leak_between_clients(client: TestClient, admin_headers):
    # An admin signed in elsewhere must not authorize an anonymous request
    payload = {"username": "evil@example.com", "password": "pw", "role": "admin"}
    response = client.post(f"{API}/users/", json=payload)
    assert response.status_code == 401
    assert client.get(f"{API}/users/aggregate").status_code == 401


def test_invalid_and_expired_tokens(client: TestClient):
    headers = {"Authorization": "Bearer not-a-token"}
    assert client.get(f"{API}/auth/session", headers=headers).status_code == 401

    expired = create_access_token({"sub": "stacy@example.com", "uid": "u-stacy"}, expires_delta=timedelta(minutes=-1))
    response = client.get(f"{API}/auth/session", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401


def test_token_for_deleted_user(client: TestClient):
    token = create_access_token({"sub": "gone@example.com", "uid": "u-gone"})
    response = client.get(f"{API}/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_sign_in_wrong_password(client: TestClient):
    response = sign_in(client, "stacy@example.com", "nope")
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid login credentials."


def test_sign_up_duplicate(client: TestClient):
    payload = {"username": "new@example.com", "password": "pw12345"}
    assert client.post(f"{API}/auth/sign-up", json=payload).status_code == 201
    response = client.post(f"{API}/auth/sign-up", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists."


def test_users_aggregate(client: TestClient, stacy_headers):
    response = client.get(f"{API}/users/aggregate", headers=stacy_headers)
    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"admin@example.com", "stacy@example.com"}
    assert data["stacy@example.com"]["stats"]["total_hours"] == 1.5
    assert "password_hash" not in data["stacy@example.com"]["user"]


def test_user_stats(client: TestClient, stacy_headers):
    response = client.get(f"{API}/users/u-admin/stats", headers=stacy_headers)
    assert response.status_code == 200
    assert response.json()["division_breakdown"] == {"Demolition": 7200}


def test_create_user_needs_admin(client: TestClient, stacy_headers, admin_headers):
    payload = {"username": "crew@example.com", "password": "pw", "name": "Crew"}
    assert client.post(f"{API}/users/", json=payload).status_code == 401
    assert client.post(f"{API}/users/", json=payload, headers=stacy_headers).status_code == 403

    response = client.post(f"{API}/users/", json=payload, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["username"] == "crew@example.com"


def test_time_entry_lifecycle(client: TestClient, stacy_headers):
    response = client.post(
        f"{API}/time-entries/u-stacy",
        json={"duration": 900, "csi_division": "Framing", "job_address": "4 Hayden Ln", "date": "2024-03-21"},
        headers=stacy_headers,
    )
    assert response.status_code == 201
    entry_id = response.json()[0]["id"]

    response = client.put(f"{API}/time-entries/u-stacy/{entry_id}", json={"notes": "afternoon"}, headers=stacy_headers)
    assert response.status_code == 200
    assert response.json()[0]["notes"] == "afternoon"

    response = client.get(f"{API}/time-entries/u-stacy", headers=stacy_headers)
    assert [e["id"] for e in response.json()] == [entry_id, "e2", "e1"]

    assert client.delete(f"{API}/time-entries/u-stacy/{entry_id}", headers=stacy_headers).status_code == 204
    response = client.get(f"{API}/users/aggregate", headers=stacy_headers)
    assert response.json()["stacy@example.com"]["entry_count"] == 2


def test_entries_of_other_users_need_admin(client: TestClient, stacy_headers, admin_headers):
    response = client.delete(f"{API}/time-entries/u-admin/e3", headers=stacy_headers)
    assert response.status_code == 403
    response = client.put(f"{API}/time-entries/u-stacy/e1", json={"notes": "checked"}, headers=admin_headers)
    assert response.status_code == 200


def test_empty_update_is_rejected(client: TestClient, stacy_headers):
    response = client.put(f"{API}/time-entries/u-stacy/e1", json={}, headers=stacy_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "No fields to update."


def test_all_time_entries(client: TestClient, stacy_headers):
    response = client.get(f"{API}/time-entries/", params={"limit": 2}, headers=stacy_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 2
    assert all(e["user_name"] for e in data)


def test_grouped_time_entries(client: TestClient, stacy_headers):
    response = client.get(f"{API}/time-entries/grouped", headers=stacy_headers)
    assert response.status_code == 200
    march = response.json()["2024"]["2"]
    assert march["name"] == "March"
    assert march["periods"]["first-half"]["stats"]["count"] == 1
    assert march["periods"]["second-half"]["stats"]["count"] == 2
    assert march["periods"]["second-half"]["label"] == "16th - End"
    assert march["top_divisions"] == [["Demolition", 10800], ["Framing", 1800]]


def test_job_addresses(client: TestClient, stacy_headers):
    assert client.get(f"{API}/job-addresses/", headers=stacy_headers).json() == ["4 Hayden Ln", "804 N Broad St"]

    response = client.post(f"{API}/job-addresses/u-stacy", json={"address": "   "}, headers=stacy_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Address cannot be empty"

    response = client.post(f"{API}/job-addresses/u-stacy", json={"address": "12 Elm St"}, headers=stacy_headers)
    assert response.status_code == 201
    assert "12 Elm St" in client.get(f"{API}/job-addresses/", headers=stacy_headers).json()
    assert len(client.get(f"{API}/job-addresses/u-stacy", headers=stacy_headers).json()) == 2

    response = client.post(f"{API}/job-addresses/u-admin", json={"address": "Elsewhere"}, headers=stacy_headers)
    assert response.status_code == 403


def test_csi_tasks(client: TestClient, stacy_headers, admin_headers):
    response = client.get(f"{API}/csi-tasks/", headers=stacy_headers)
    assert [t["name"] for t in response.json()] == ["Demolition", "Framing", "Painting"]
    assert client.get(f"{API}/csi-tasks/names", headers=stacy_headers).json() == ["Demolition", "Framing", "Painting"]

    assert client.post(f"{API}/csi-tasks/", json={"name": "Roofing"}, headers=stacy_headers).status_code == 403

    response = client.post(f"{API}/csi-tasks/", json={"name": "Framing"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Task already exists."

    response = client.put(f"{API}/csi-tasks/t3", json={"name": "Finishes"}, headers=admin_headers)
    assert response.status_code == 200
    assert client.delete(f"{API}/csi-tasks/t3", headers=admin_headers).status_code == 204
    assert client.get(f"{API}/csi-tasks/names", headers=stacy_headers).json() == ["Demolition", "Framing"]


def test_reports(client: TestClient, stacy_headers):
    payload = {"all_jobs": True, "all_tasks": True, "all_workers": True}
    response = client.post(f"{API}/reports/", json=payload, headers=stacy_headers)
    assert response.status_code == 200
    assert response.json()["rows"] == [
        {"date": "All", "job": None, "task": None, "worker": None, "hours": 3.5}
    ]

    response = client.post(
        f"{API}/reports/csv",
        json={"all_jobs": True, "all_tasks": True, "start_date": "2024-03-20"},
        headers=stacy_headers,
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.splitlines() == ["Date,Worker,Hours", "2024-03-20,Stacy,0.50", "2024-03-20,Admin,2.00"]
