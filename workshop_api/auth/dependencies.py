import logging
from dataclasses import dataclass, field

import jwt
from fastapi import Depends
from fastapi.security import APIKeyHeader

from workshop_api.auth import jwt_handler
from workshop_api.core.errors import Forbidden, InvalidCredential, Unauthenticated

logger = logging.getLogger(__name__)

# APIKeyHeader instead of HTTPBearer: existing clients send the raw token
# without a "Bearer " prefix, and both forms must be accepted.
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    claims: dict = field(default_factory=dict, compare=False)


def extract_token(authorization: str | None) -> str | None:
    if authorization is None:
        return None
    value = authorization.strip()
    scheme, _, credentials = value.partition(" ")
    if scheme.lower() == "bearer":
        value = credentials.strip()
    return value or None


def verify_token(token: str) -> Principal:
    try:
        payload = jwt_handler.decode_access_token(token)
        user_id = int(payload["sub"])
        role = payload["role"]
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        logger.debug("Rejected bearer credential: %s", exc)
        raise InvalidCredential("Invalid token.") from exc

    if not isinstance(role, str) or not role:
        raise InvalidCredential("Invalid token.")
    return Principal(user_id=user_id, role=role, claims=payload)


def get_current_principal(authorization: str | None = Depends(authorization_header)) -> Principal:
    token = extract_token(authorization)
    if token is None:
        raise Unauthenticated("Access denied. No token provided.")
    return verify_token(token)


def get_optional_principal(authorization: str | None = Depends(authorization_header)) -> Principal | None:
    """For public endpoints: an absent or unusable token means an anonymous caller."""
    token = extract_token(authorization)
    if token is None:
        return None
    try:
        return verify_token(token)
    except InvalidCredential:
        return None


def require_role(role: str):
    """Dependency factory: the authenticated principal's role must equal ``role``."""

    def _role_dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role != role:
            raise Forbidden("Access forbidden.")
        return principal

    return _role_dependency
