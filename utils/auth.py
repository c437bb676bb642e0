"""Resolves the authenticated owner of a request from its bearer token."""
import logging
import os
from typing import Optional

import jwt
from dotenv import load_dotenv
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

load_dotenv()

bearer_scheme = HTTPBearer(auto_error=False)

JWT_ALGORITHMS = ["HS256"]


def _jwt_secret() -> Optional[str]:
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if secret is not None and secret.strip() == "":
        return None
    return secret


def _jwt_audience() -> str:
    return os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")


def _unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_owner_id(token: str) -> str:
    """
    Verifies an access token issued by the identity provider and returns
    its subject, the owner id every expense query is scoped by.
    Raises jwt.InvalidTokenError on any problem with the token.
    """
    secret = _jwt_secret()
    if secret is None:
        raise jwt.InvalidTokenError("SUPABASE_JWT_SECRET is not configured")
    claims = jwt.decode(
        token,
        secret,
        algorithms=JWT_ALGORITHMS,
        audience=_jwt_audience(),
        options={"require": ["sub", "exp"]},
    )
    owner_id = claims.get("sub")
    if not isinstance(owner_id, str) or not owner_id:
        raise jwt.InvalidTokenError("Token subject is missing")
    return owner_id


def get_current_owner(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    """Dependency returning the owner id; responds 401 when there is none."""
    if credentials is None:
        raise _unauthorized()
    try:
        return decode_owner_id(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected access token: {e}")
        raise _unauthorized()
