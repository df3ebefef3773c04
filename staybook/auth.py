import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from .config import settings
from .errors import AuthorizationError, Unauthorized


logger = logging.getLogger("staybook.auth")

bearer_scheme = HTTPBearer(auto_error=False)

ROLES = ("admin", "customer")

_JWK_CLIENTS: dict[str, PyJWKClient] = {}


@dataclass(frozen=True)
class Identity:
    id: str
    role: str = "customer"
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def phone(self) -> str | None:
        return self.claims.get("phone_number") or self.claims.get("phone") or None

    @property
    def name(self) -> str | None:
        return self.claims.get("name") or None


def create_access_token(user_id: str, role: str = "customer", phone: str | None = None, name: str | None = None) -> str:
    """Mint an HS256 token shaped like the provider's (dev tooling and tests)."""
    now = dt.datetime.now(dt.timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + settings.jwt_expires_delta).timestamp()),
    }
    if phone:
        payload["phone_number"] = phone
    if name:
        payload["name"] = name
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE
    if settings.JWT_ISSUER:
        payload["iss"] = settings.JWT_ISSUER
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def _decode_with_jwks(token: str, jwks_url: str) -> dict[str, Any]:
    client = _JWK_CLIENTS.get(jwks_url)
    if client is None:
        client = PyJWKClient(jwks_url, cache_keys=True)
        _JWK_CLIENTS[jwks_url] = client
    signing_key = client.get_signing_key_from_jwt(token).key
    return jwt.decode(
        token,
        signing_key,
        algorithms=["RS256"],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
        options={"require": ["exp", "iat", "sub"], "verify_aud": settings.JWT_AUDIENCE is not None},
    )


def _role_from_claims(claims: dict[str, Any]) -> str:
    # Providers flag admins either with a custom boolean claim or a role string
    if claims.get("admin") is True:
        return "admin"
    role = str(claims.get(settings.ADMIN_ROLE_CLAIM) or "customer").lower()
    return role if role in ROLES else "customer"


def verify(credential: str | None) -> Identity:
    """Map a bearer credential to a verified identity, or raise Unauthorized."""
    if not credential:
        raise Unauthorized("Missing credentials")
    try:
        if settings.JWT_JWKS_URL:
            claims = _decode_with_jwks(credential, settings.JWT_JWKS_URL)
        else:
            claims = jwt.decode(
                credential,
                settings.JWT_SECRET,
                algorithms=[settings.JWT_ALG],
                audience=settings.JWT_AUDIENCE,
                issuer=settings.JWT_ISSUER,
                options={"require": ["exp", "sub"], "verify_aud": settings.JWT_AUDIENCE is not None},
            )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired", code="token_expired")
    except jwt.PyJWKClientError as exc:
        logger.warning("jwks lookup failed: %s", exc)
        raise Unauthorized("Invalid token")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")
    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Invalid token payload")
    return Identity(id=str(user_id), role=_role_from_claims(claims), claims=dict(claims))


def get_current_identity(creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> Identity:
    return verify(creds.credentials if creds else None)


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")
    return identity


def try_get_identity(request: Request) -> Identity | None:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return None
    try:
        return verify(auth.split(" ", 1)[1].strip())
    except Unauthorized:
        return None
