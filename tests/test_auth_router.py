import logging
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from studio_auth.main import app, log_config_warnings
from studio_auth.config import Settings
from studio_auth.database import get_session
from studio_auth.db import models  # noqa: F401
from studio_auth.dependencies import get_notifier, get_token_issuer
from studio_auth.application.ports.user_repo import UserDto
from studio_auth.application.services import TokenIssuer
from studio_auth.exceptions import NotificationError


class CapturingNotifier:
    def __init__(self):
        self.codes = {}
        self.fail = False

    async def send(self, email, code, username=None):
        if self.fail:
            raise NotificationError("Failed to send OTP email")
        self.codes[email] = code


@pytest.fixture
def notifier():
    return CapturingNotifier()


@pytest.fixture
def client(notifier):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)

    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_token_issuer] = lambda: TokenIssuer(secret_key="router-secret", expire_minutes=30)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(client, notifier, email="newuser@example.com"):
    assert client.post("/auth/otp/request", json={"email": email}).status_code == 200
    res = client.post("/auth/otp/verify", json={"email": email, "code": notifier.codes[email]})
    assert res.status_code == 200
    return res.json()


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_request_then_verify_then_replay(client, notifier):
    res = client.post("/auth/otp/request", json={"email": "newuser@example.com"})
    assert res.status_code == 200
    assert res.json() == {"message": "OTP sent successfully to your email"}
    code = notifier.codes["newuser@example.com"]
    assert code not in res.text

    res = client.post("/auth/otp/verify", json={"email": "newuser@example.com", "code": code})
    assert res.status_code == 200
    body = res.json()
    assert body["token"]
    assert body["user"]["email"] == "newuser@example.com"
    assert body["user"]["username"] == "newuser"
    assert body["user"]["is_active"] is True

    res = client.post("/auth/otp/verify", json={"email": "newuser@example.com", "code": code})
    assert res.status_code == 401
    assert res.json() == {"success": False, "data": None, "error": "Invalid or expired code"}


def test_invalid_email_is_400(client):
    res = client.post("/auth/otp/request", json={"email": "not-an-email"})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid email format"


def test_notifier_failure_is_502(client, notifier):
    notifier.fail = True
    res = client.post("/auth/otp/request", json={"email": "newuser@example.com"})
    assert res.status_code == 502
    assert res.json()["success"] is False


def test_verify_unknown_email_is_404(client):
    res = client.post("/auth/otp/verify", json={"email": "ghost@example.com", "code": "123456"})
    assert res.status_code == 404


def test_profile_requires_valid_token(client):
    assert client.get("/auth/profile").status_code == 401
    assert client.get("/auth/profile", headers=_bearer("garbage")).status_code == 401
    foreign = TokenIssuer(secret_key="someone-else").issue
    dto = UserDto(id=1, username="x", email="x@example.com", is_active=True,
                  created_at=datetime.now(timezone.utc), updated_at=datetime.now(timezone.utc))
    assert client.get("/auth/profile", headers=_bearer(foreign(dto))).status_code == 401


def test_profile_read_and_update(client, notifier):
    login = _login(client, notifier)
    _login(client, notifier, email="taken@example.com")
    headers = _bearer(login["token"])

    res = client.get("/auth/profile", headers=headers)
    assert res.status_code == 200
    assert res.json()["user"]["email"] == "newuser@example.com"

    res = client.put("/auth/profile", json={"email": "taken@example.com"}, headers=headers)
    assert res.status_code == 409
    assert res.json()["error"] == "Email is already taken"

    res = client.put("/auth/profile", json={"username": "studio_owner"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["user"]["username"] == "studio_owner"
    assert res.json()["user"]["email"] == "newuser@example.com"


def test_deactivate_blocks_new_codes_and_pending_codes(client, notifier):
    login = _login(client, notifier)
    client.post("/auth/otp/request", json={"email": "newuser@example.com"})
    pending = notifier.codes["newuser@example.com"]

    res = client.post("/auth/deactivate", headers=_bearer(login["token"]))
    assert res.status_code == 200
    assert res.json() == {"message": "Account deactivated successfully"}

    res = client.post("/auth/otp/verify", json={"email": "newuser@example.com", "code": pending})
    assert res.status_code == 403
    assert client.post("/auth/otp/request", json={"email": "newuser@example.com"}).status_code == 403
    assert client.post("/auth/refresh", headers=_bearer(login["token"])).status_code == 403


def test_check_logout_and_refresh(client, notifier):
    assert client.get("/auth/check").json() == {"is_authenticated": False, "user": None}
    assert client.get("/auth/check", headers=_bearer("garbage")).json()["is_authenticated"] is False

    login = _login(client, notifier)
    headers = _bearer(login["token"])

    check = client.get("/auth/check", headers=headers).json()
    assert check["is_authenticated"] is True
    assert check["user"]["email"] == "newuser@example.com"

    res = client.post("/auth/refresh", headers=headers)
    assert res.status_code == 200
    assert res.json()["token"]

    assert client.post("/auth/logout").json() == {"message": "Logout successful"}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["service"]


def test_error_envelope_is_documented():
    responses = app.openapi()["paths"]["/auth/profile"]["get"]["responses"]
    assert responses["401"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    assert "409" in app.openapi()["paths"]["/auth/profile"]["put"]["responses"]


def test_missing_mail_credentials_warns_without_promising_failure(caplog):
    cfg = Settings(JWT_SECRET_KEY="configured", MAIL_USERNAME="", MAIL_PASSWORD="",
                   MAIL_SERVER="relay.internal", MAIL_SUPPRESS_SEND=False)
    with caplog.at_level(logging.WARNING, logger="studio_auth.main"):
        log_config_warnings(cfg)

    messages = [r.getMessage() for r in caplog.records if r.name == "studio_auth.main"]
    assert len(messages) == 1
    assert "may fail" in messages[0]
    assert "relay.internal" in messages[0]


def test_configured_settings_log_no_warnings(caplog):
    cfg = Settings(JWT_SECRET_KEY="configured", MAIL_USERNAME="studio", MAIL_PASSWORD="secret")
    with caplog.at_level(logging.WARNING, logger="studio_auth.main"):
        log_config_warnings(cfg)
    assert [r for r in caplog.records if r.name == "studio_auth.main"] == []
