"""Session Token Parsing

Tokens are issued by the platform's auth service and signed with a shared
secret. The payload carries the user under a `user` claim:

    {"user": {"id": "...", "email": "...", "name": "...", "role": "REPORTER",
              "organizationId": "...", "departmentId": "..."}, "exp": ...}
"""
import jwt
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry, return the claims

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    if not token:
        raise AuthenticationError("Token is missing")

    parts = token.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        token = parts[1]
    elif len(parts) == 1:
        token = parts[0]
    else:
        raise AuthenticationError("Malformed Authorization header")

    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise AuthenticationError("Token has expired")
    except jwt.PyJWTError as e:
        logger.warning(f"JWT validation error: {e}")
        raise AuthenticationError(f"Invalid token: {str(e)}")


def parse_session(authorization: Optional[str]) -> Optional[ActorContext]:
    """
    Resolve the Authorization header into an actor

    Returns None when no header is present. A header that is present but
    invalid raises AuthenticationError.
    """
    if not authorization:
        return None

    claims = decode_token(authorization)
    user = claims.get("user")
    if not isinstance(user, dict):
        logger.warning(f"No user claim in token. Available claims: {list(claims.keys())}")
        raise AuthenticationError("Token does not carry a user")

    try:
        actor = ActorContext.model_validate(user)
    except PydanticValidationError as e:
        logger.warning(f"Malformed user claim: {e.error_count()} error(s)")
        raise AuthenticationError("Token user claim is malformed")

    logger.debug(f"Authenticated user: {actor.email}", extra={"actor_id": actor.user_id})
    return actor
