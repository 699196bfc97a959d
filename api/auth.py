"""Bearer-token verification for tokens issued by the identity service.

Tokens are HS256 JWTs signed with the shared ``JWT_SECRET_KEY``; the payload
carries the opaque user id (``sub``) and ``role`` (athlete, coach, admin).
``issue_access_token`` exists for tests and local tooling only.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import get_settings

KNOWN_ROLES = ("athlete", "coach", "admin")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthPrincipal:
    user_id: str
    role: str
    exp: int

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_coach(self) -> bool:
        return self.role == "coach"


def _unauthorized(code: str) -> HTTPException:
    return HTTPException(status_code=401, detail={"code": code}, headers={"WWW-Authenticate": "Bearer"})


def _encode_segment(obj: dict[str, Any]) -> str:
    raw = json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode_segment(segment: str) -> dict[str, Any]:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))


def _signature(signing_input: str) -> str:
    key = get_settings().jwt_secret_key.encode("utf-8")
    digest = hmac.new(key, signing_input.encode("ascii"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def issue_access_token(*, user_id: str, role: str, expires_in_seconds: int = 3600) -> str:
    head = _encode_segment({"alg": "HS256", "typ": "JWT"})
    body = _encode_segment({"sub": str(user_id), "role": str(role).lower(), "exp": int(time.time()) + int(expires_in_seconds)})
    return f"{head}.{body}.{_signature(f'{head}.{body}')}"


def decode_access_token(token: str) -> AuthPrincipal:
    parts = token.split(".")
    if len(parts) != 3:
        raise _unauthorized("INVALID_TOKEN")
    head, body, signature = parts
    if not hmac.compare_digest(signature, _signature(f"{head}.{body}")):
        raise _unauthorized("INVALID_TOKEN")
    try:
        claims = _decode_segment(body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise _unauthorized("INVALID_TOKEN") from exc

    if int(claims.get("exp") or 0) <= int(time.time()):
        raise _unauthorized("TOKEN_EXPIRED")
    role = str(claims.get("role") or "").lower()
    if not claims.get("sub") or role not in KNOWN_ROLES:
        raise _unauthorized("INVALID_TOKEN")
    return AuthPrincipal(user_id=str(claims["sub"]), role=role, exp=int(claims["exp"]))


def get_current_principal(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AuthPrincipal:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("AUTH_REQUIRED")
    return decode_access_token(credentials.credentials)


def require_roles(*allowed_roles: str) -> Callable[[AuthPrincipal], AuthPrincipal]:
    """Dependency factory gating a route on role; admin passes every gate."""
    allowed = frozenset(r.lower() for r in allowed_roles)

    def _dependency(principal: AuthPrincipal = Depends(get_current_principal)) -> AuthPrincipal:
        if principal.is_admin or principal.role in allowed:
            return principal
        raise HTTPException(
            status_code=403,
            detail={"code": "FORBIDDEN_ROLE", "required_roles": sorted(allowed), "role": principal.role},
        )

    return _dependency


def ensure_owner(principal: AuthPrincipal, owner_id: Optional[str]) -> None:
    """Calendars, blocked times and bookings are writable only by the coach who owns them."""
    if principal.is_admin:
        return
    if owner_id is None or str(owner_id) != principal.user_id:
        raise HTTPException(status_code=403, detail={"code": "FORBIDDEN_OWNER"})


def ensure_plan_access(principal: AuthPrincipal, athlete_id: str, coach_id: Optional[str]) -> None:
    if principal.is_admin or principal.user_id == str(athlete_id):
        return
    if principal.is_coach and coach_id is not None and principal.user_id == str(coach_id):
        return
    raise HTTPException(status_code=403, detail={"code": "FORBIDDEN_PLAN_SCOPE", "athlete_id": athlete_id})
