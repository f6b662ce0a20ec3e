from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from api import SessionStore, create_app
from exceptions import ValidationError


@pytest.fixture
def client(db_file, clock):
    return TestClient(create_app(db_file=db_file, clock=clock))

@pytest.fixture
def headers(client):
    response = client.post("/session", json={"email": "reader@example.com", "password": "pw"})
    assert response.status_code == 200
    return {"X-Session-Token": response.json()["token"]}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["timestamp"].endswith("+00:00")

def test_catalog_is_public(client):
    response = client.get("/books")
    assert response.status_code == 200
    books = response.json()
    assert len(books) == 20
    assert books[0] == {"id": 1, "title": "Clean Code", "author": "Robert C. Martin"}

def test_login_and_whoami(client, headers):
    response = client.get("/session", headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == "reader@example.com"

def test_login_requires_both_fields(client):
    response = client.post("/session", json={"email": "reader@example.com", "password": ""})
    assert response.status_code == 400
    assert response.json()["detail"] == "Please enter both email and password!"

@pytest.mark.parametrize("token", [None, "bogus"])
def test_loans_require_session(client, token):
    headers = {"X-Session-Token": token} if token else {}
    assert client.get("/loans", headers=headers).status_code == 401
    assert client.post("/loans", json={"title": "Clean Code"}, headers=headers).status_code == 401

def test_logout_invalidates_token(client, headers):
    assert client.delete("/session", headers=headers).status_code == 200
    assert client.get("/loans", headers=headers).status_code == 401

def test_borrow_and_return_flow(client, headers, clock):
    response = client.post("/loans", json={"title": "Clean Code"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == 'Borrowed "Clean Code" successfully! Due on 2024-01-15'
    record = body["record"]
    assert record["borrowDate"] == "2024-01-01"
    assert record["dueDate"] == "2024-01-15"
    assert record["returnDate"] is None
    assert record["penalty"] == 0

    clock.today = date(2024, 1, 20)
    response = client.post(f"/loans/{record['id']}/return", headers=headers)
    assert response.status_code == 200
    assert response.json()["returnDate"] == "2024-01-20"
    assert response.json()["penalty"] == 50

    loans = client.get("/loans", headers=headers).json()
    assert [r["id"] for r in loans] == [record["id"]]

def test_borrow_errors(client, headers):
    response = client.post("/loans", json={"title": ""}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Please choose a book title!"

    assert client.post("/loans", json={"title": "Unknown"}, headers=headers).status_code == 400

    client.post("/loans", json={"title": "Refactoring"}, headers=headers)
    response = client.post("/loans", json={"title": "Refactoring"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "You already borrowed this book!"
    assert len(client.get("/loans", headers=headers).json()) == 1

def test_return_unknown_record(client, headers):
    assert client.post("/loans/999/return", headers=headers).status_code == 404

def test_stats(client, headers):
    client.post("/loans", json={"title": "Clean Code"}, headers=headers)
    response = client.get("/stats", headers=headers)
    assert response.status_code == 200
    assert response.json()["outstanding"] == 1

def test_ledger_survives_app_restart(db_file, clock, headers, client):
    client.post("/loans", json={"title": "Clean Code"}, headers=headers)

    restarted = TestClient(create_app(db_file=db_file, clock=clock))
    # Sessions do not survive a restart
    assert restarted.get("/loans", headers=headers).status_code == 401
    token = restarted.post("/session", json={"email": "a@b.c", "password": "x"}).json()["token"]
    loans = restarted.get("/loans", headers={"X-Session-Token": token}).json()
    assert [r["title"] for r in loans] == ["Clean Code"]

def test_index_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Library Management System" in response.text

def test_config_exposes_currency(client):
    response = client.get("/config")
    assert response.status_code == 200
    body = response.json()
    assert body["currency_symbol"] == "₹"
    assert body["borrow_days"] == 14
    assert body["penalty_per_day"] == 10

def test_whitespace_password_logs_in(client):
    response = client.post("/session", json={"email": "reader@example.com", "password": "   "})
    assert response.status_code == 200
    assert response.json()["email"] == "reader@example.com"

def test_each_borrow_reports_its_own_title(client, headers):
    first = client.post("/loans", json={"title": "Refactoring"}, headers=headers).json()
    second = client.post("/loans", json={"title": "Clean Code"}, headers=headers).json()
    assert first["message"].startswith('Borrowed "Refactoring"')
    assert second["message"].startswith('Borrowed "Clean Code"')


class FakeNow:
    def __init__(self) -> None:
        self.value = datetime(2024, 1, 1, 12, 0)

    def __call__(self) -> datetime:
        return self.value


def test_session_store_expires_idle_tokens():
    now = FakeNow()
    sessions = SessionStore(ttl_seconds=60, max_sessions=10, now=now)
    token = sessions.open("reader@example.com", "pw")

    now.value += timedelta(seconds=30)
    assert sessions.get(token) is not None
    # Activity pushed expiry forward
    now.value += timedelta(seconds=45)
    assert sessions.get(token) is not None

    now.value += timedelta(seconds=61)
    assert sessions.get(token) is None
    assert len(sessions) == 0

def test_session_store_purges_expired_on_login():
    now = FakeNow()
    sessions = SessionStore(ttl_seconds=60, max_sessions=10, now=now)
    for _ in range(5):
        sessions.open("reader@example.com", "pw")
    now.value += timedelta(minutes=5)
    sessions.open("reader@example.com", "pw")
    assert len(sessions) == 1

def test_session_store_is_capped():
    now = FakeNow()
    sessions = SessionStore(ttl_seconds=3600, max_sessions=3, now=now)
    tokens = []
    for _ in range(5):
        tokens.append(sessions.open("reader@example.com", "pw"))
        now.value += timedelta(seconds=1)
    assert len(sessions) == 3
    assert sessions.get(tokens[0]) is None
    assert sessions.get(tokens[1]) is None
    assert sessions.get(tokens[-1]) is not None

def test_session_store_rejects_empty_credentials():
    sessions = SessionStore(ttl_seconds=60, max_sessions=3)
    with pytest.raises(ValidationError):
        sessions.open("", "pw")
    assert len(sessions) == 0

def test_expired_token_is_rejected_by_api(db_file, clock):
    now = FakeNow()
    client = TestClient(create_app(db_file=db_file, clock=clock,
                                   sessions=SessionStore(ttl_seconds=60, now=now)))
    token = client.post("/session", json={"email": "a@b.c", "password": "x"}).json()["token"]
    headers = {"X-Session-Token": token}
    assert client.get("/loans", headers=headers).status_code == 200
    now.value += timedelta(minutes=2)
    assert client.get("/loans", headers=headers).status_code == 401
