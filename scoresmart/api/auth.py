"""
Caller Authentication

Bearer token check plus caller identity headers. Identity and role come from
the upstream identity provider (X-Caller-Id / X-Caller-Role); student feature
flags are loaded from the feature store on every request so admin toggles
take effect immediately.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from scoresmart.config import API_TOKEN
from scoresmart.services.feature_gate import FeatureStore, get_feature_store
from scoresmart.services.session_types import Caller, CallerRole

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details
            }
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


async def verify_token(credentials: Optional[HTTPAuthorizationCredentials]) -> bool:
    """
    Verify bearer token.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        True if valid, raises HTTPException otherwise
    """
    if credentials is None:
        raise _unauthorized(
            "AUTH_001",
            "Authorization header missing",
            "Please provide a valid bearer token"
        )

    # MVP: Simple token comparison
    # In production: Decode and validate JWT
    if credentials.credentials != API_TOKEN:
        logger.warning(f"Invalid token attempt: {credentials.credentials[:10]}...")
        raise _unauthorized(
            "AUTH_002",
            "Invalid or expired token",
            "The provided token is not valid"
        )

    return True


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_caller_id: Optional[str] = Header(None),
    x_caller_role: Optional[str] = Header(None),
    feature_store: FeatureStore = Depends(get_feature_store),
) -> Caller:
    """
    Resolve the caller for this request.

    Returns:
        Caller with role and, for students, the enabled feature keys
    """
    await verify_token(credentials)

    if not x_caller_id or not x_caller_role:
        raise _unauthorized(
            "AUTH_003",
            "Caller identity missing",
            "X-Caller-Id and X-Caller-Role headers are required"
        )

    try:
        role = CallerRole(x_caller_role.upper())
    except ValueError:
        raise _unauthorized(
            "AUTH_004",
            "Unknown caller role",
            "X-Caller-Role must be STUDENT, TUTOR or ADMIN"
        )

    features = frozenset()
    if role == CallerRole.STUDENT:
        features = await feature_store.enabled_features(x_caller_id)

    return Caller(id=x_caller_id, role=role, enabled_features=features)
