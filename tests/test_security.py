from __future__ import annotations

import pytest
from fastapi import HTTPException

from api.auth import AuthPrincipal, decode_access_token, ensure_owner, ensure_plan_access, issue_access_token
from core.config import get_settings


@pytest.fixture(autouse=True)
def _secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "unit-test-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_token_roundtrip():
    principal = decode_access_token(issue_access_token(user_id="coach-1", role="coach"))
    assert principal.user_id == "coach-1"
    assert principal.role == "coach"
    assert not principal.is_admin


def test_tampered_token_is_rejected():
    token = issue_access_token(user_id="coach-1", role="coach")
    head, payload, sig = token.split(".")
    forged = issue_access_token(user_id="coach-1", role="admin").split(".")[1]
    with pytest.raises(HTTPException) as exc:
        decode_access_token(f"{head}.{forged}.{sig}")
    assert exc.value.status_code == 401
    assert exc.value.detail["code"] == "INVALID_TOKEN"


def test_expired_token_is_rejected():
    token = issue_access_token(user_id="coach-1", role="coach", expires_in_seconds=-5)
    with pytest.raises(HTTPException) as exc:
        decode_access_token(token)
    assert exc.value.detail["code"] == "TOKEN_EXPIRED"


def test_token_signed_with_other_secret(monkeypatch):
    token = issue_access_token(user_id="coach-1", role="coach")
    monkeypatch.setenv("JWT_SECRET_KEY", "rotated")
    get_settings.cache_clear()
    with pytest.raises(HTTPException):
        decode_access_token(token)


def test_owner_and_plan_scope():
    coach = AuthPrincipal(user_id="coach-1", role="coach", exp=0)
    admin = AuthPrincipal(user_id="ops", role="admin", exp=0)
    athlete = AuthPrincipal(user_id="athlete-1", role="athlete", exp=0)

    ensure_owner(coach, "coach-1")
    ensure_owner(admin, "coach-9")
    with pytest.raises(HTTPException):
        ensure_owner(coach, "coach-2")

    ensure_plan_access(athlete, "athlete-1", "coach-1")
    ensure_plan_access(coach, "athlete-1", "coach-1")
    with pytest.raises(HTTPException) as exc:
        ensure_plan_access(athlete, "athlete-2", "coach-1")
    assert exc.value.status_code == 403
    with pytest.raises(HTTPException):
        ensure_plan_access(coach, "athlete-1", None)
