"""
verify.py
---------
Purpose:
    Request authentication for the sync service.

Notes:
    - User routes: Supabase JWT verified against the project JWKS (ES256),
      exposed as `auth_dependency`.
    - Scheduled sync routes: bearer token compared in constant time against
      the configured cron secret, exposed as `cron_auth_dependency`.
"""

import hmac

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SUPABASE_AUDIENCE = "authenticated"

_jwk_client = PyJWKClient(settings.jwks_url())
_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],  # Supabase now uses ES256
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
        return decoded
    except Exception as e:
        raise _unauthorized(f"Invalid authentication token: {e}") from e


def verify_cron_secret(token: str) -> None:
    expected = settings.cron_secret()
    if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
        logger.warning("Rejected scheduled sync request with invalid secret")
        raise _unauthorized("Invalid authorization token")


def auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> dict:
    if credentials is None:
        raise _unauthorized("Missing authorization header")
    return verify_jwt(credentials.credentials)


def cron_auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> None:
    if credentials is None:
        raise _unauthorized("Missing authorization header")
    verify_cron_secret(credentials.credentials)
