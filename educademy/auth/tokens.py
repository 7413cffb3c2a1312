"""
JWT access-token utilities.

Tokens are issued by the account service; this server only verifies them.
create_access_token exists for tooling and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from ..config.models import AuthConfig
from ..exceptions import InvalidCredentialError
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import log_and_raise

logger = get_logger(__name__)

SUBJECT_CLAIMS = ("userId", "id", "sub")


def create_access_token(
    data: dict[str, Any],
    auth_config: AuthConfig,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=auth_config.token_expire_minutes))
    to_encode.update({"exp": expire})
    token = jwt.encode(to_encode, auth_config.jwt_secret, algorithm=auth_config.jwt_algorithm)
    assert isinstance(token, str)
    return token


def decode_access_token(token: str, auth_config: AuthConfig) -> dict[str, Any]:
    """
    Verify signature and expiry of a JWT access token.

    Args:
        token: Encoded token
        auth_config: Secret and algorithm

    Returns:
        dict: The verified claims

    Raises:
        InvalidCredentialError: If the token is malformed, forged or expired
    """
    try:
        payload = jwt.decode(token, auth_config.jwt_secret, algorithms=[auth_config.jwt_algorithm])
    except ExpiredSignatureError as e:
        log_and_raise(
            InvalidCredentialError,
            "Access token expired",
            details={"error": str(e)},
            user_friendly="Session expired, please sign in again",
        )
    except JWTError as e:
        log_and_raise(
            InvalidCredentialError,
            f"Access token rejected: {e}",
            details={"error": str(e)},
            user_friendly="Invalid authentication token",
        )
    assert isinstance(payload, dict)
    return payload


def extract_user_id(claims: dict[str, Any]) -> int:
    """
    Read the subject user id from verified claims.

    Raises:
        InvalidCredentialError: If no usable subject claim is present
    """
    for claim in SUBJECT_CLAIMS:
        value = claims.get(claim)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            break
    log_and_raise(
        InvalidCredentialError,
        "Access token carries no usable subject claim",
        details={"claims": sorted(claims.keys())},
        user_friendly="Invalid authentication token",
    )
