"""
HTTP-level tests for the public auth endpoints.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from fastapi.testclient import TestClient

from identity_platform.identity_service.deps import get_password_hasher
from identity_platform.identity_service.main import app
from identity_platform.identity_service.models import AuthEventRecord, User
from identity_platform.identity_service.tokens import SigningKey, SigningKeyRing, TokenService

from .conftest import TEST_SECRET


def register(client, email="u@x.com", password="pw", first_name="A", last_name="B"):
    return client.post(
        "/v1/users",
        json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
    )


def test_create_authenticate_validate_scenario(client):
    created = register(client)
    assert created.status_code == 200
    t1 = created.json()["token"]

    login = client.post("/v1/auth", json={"email": "u@x.com", "password": "pw"})
    assert login.status_code == 200
    t2 = login.json()["token"]

    for token in (t1, t2):
        response = client.post("/v1/validate-token", json={"token": token})
        assert response.status_code == 200
        assert response.json() == {"email": "u@x.com"}


def test_create_user_accepts_snake_case_names(client, session_factory):
    response = client.post(
        "/v1/users",
        json={"email": "snake@x.com", "password": "pw", "first_name": "Sn", "last_name": "Ake"},
    )
    assert response.status_code == 200

    db = session_factory()
    try:
        user = db.query(User).filter(User.email == "snake@x.com").one()
        assert (user.first_name, user.last_name) == ("Sn", "Ake")
    finally:
        db.close()


def test_create_user_missing_fields(client):
    response = client.post("/v1/users", json={"email": "u@x.com", "password": "s3cret-pw"})

    assert response.status_code == 422
    assert response.json() == {"detail": "invalid request body", "error_type": "invalid_argument"}
    assert "s3cret-pw" not in response.text


def test_authenticate_missing_password_uses_error_envelope(client):
    response = client.post("/v1/auth", json={"email": "u@x.com"})

    assert response.status_code == 422
    assert response.json()["error_type"] == "invalid_argument"
    assert "u@x.com" not in response.text


def test_unexpected_failure_is_generic_internal_error(client):
    broken = Mock()
    broken.hash.side_effect = RuntimeError("argon2 backend unavailable")
    app.dependency_overrides[get_password_hasher] = lambda: broken
    # The unhandled error is re-raised after the response unless disabled
    raw_client = TestClient(app, raise_server_exceptions=False)

    response = raw_client.post(
        "/v1/users",
        json={"email": "u@x.com", "password": "pw", "firstName": "A", "lastName": "B"},
    )

    assert response.status_code == 500
    assert response.json() == {"detail": "internal error", "error_type": "internal"}
    assert "argon2" not in response.text


def test_create_user_invalid_email(client):
    for email in ("abc", "a@b", "@b.com"):
        response = register(client, email=email)
        assert response.status_code == 400
        assert response.json() == {"detail": "invalid email format", "error_type": "invalid_argument"}


def test_create_user_boundary_email_accepted(client):
    assert register(client, email="a@b.co").status_code == 200


def test_create_user_duplicate(client):
    assert register(client).status_code == 200

    response = register(client, password="other")

    assert response.status_code == 409
    assert response.json()["error_type"] == "already_exists"


def test_authenticate_failures_are_indistinguishable(client):
    register(client)

    unknown = client.post("/v1/auth", json={"email": "nobody@x.com", "password": "pw"})
    wrong = client.post("/v1/auth", json={"email": "u@x.com", "password": "nope"})

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json() == {"detail": "invalid credentials", "error_type": "unauthenticated"}


def test_validate_token_garbage_is_invalid_not_internal(client):
    response = client.post("/v1/validate-token", json={"token": "garbage"})

    assert response.status_code == 401
    assert response.json()["error_type"] == "invalid_token"


def test_validate_token_expired(client):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    stale = TokenService(
        SigningKeyRing(current=SigningKey(kid="k1", secret=TEST_SECRET)),
        ttl=timedelta(minutes=5),
        clock=lambda: past,
    ).issue("u@x.com")

    response = client.post("/v1/validate-token", json={"token": stale})

    assert response.status_code == 401
    assert response.json()["error_type"] == "expired_token"


def test_validate_token_twice_gives_same_email(client):
    token = register(client).json()["token"]

    first = client.post("/v1/validate-token", json={"token": token}).json()
    second = client.post("/v1/validate-token", json={"token": token}).json()

    assert first == second == {"email": "u@x.com"}


def test_successful_calls_publish_events_after_response(client, publisher, session_factory):
    register(client)
    client.post("/v1/auth", json={"email": "u@x.com", "password": "pw"})

    assert [(m.email, m.event_type) for m in publisher.messages] == [
        ("u@x.com", "account_created"),
        ("u@x.com", "login_success"),
    ]
    db = session_factory()
    try:
        assert {r.status for r in db.query(AuthEventRecord).all()} == {"delivered"}
    finally:
        db.close()


def test_zero_request_timeout_is_internal_error(client):
    register(client)

    response = client.post(
        "/v1/auth",
        json={"email": "u@x.com", "password": "pw"},
        headers={"X-Request-Timeout-Ms": "0"},
    )

    assert response.status_code == 500
    assert response.json() == {"detail": "internal error", "error_type": "internal"}


def test_me_resolves_identity_from_bearer_token(client):
    token = register(client).json()["token"]

    first = client.get("/v1/me", headers={"Authorization": f"Bearer {token}"})
    second = client.get("/v1/me", headers={"Authorization": f"Bearer {token}"})

    assert first.status_code == second.status_code == 200
    assert first.json()["email"] == "u@x.com"
    # Subject ids are minted per request
    assert first.json()["subject_id"] != second.json()["subject_id"]


def test_me_without_token_is_unauthenticated(client):
    response = client.get("/v1/me")
    assert response.status_code == 401
    assert response.json()["error_type"] == "unauthenticated"

    response = client.get("/v1/me", headers={"Authorization": "Basic dXNlcjpwdw=="})
    assert response.status_code == 401


def test_me_with_bad_token_is_invalid_token(client):
    response = client.get("/v1/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["error_type"] == "invalid_token"
