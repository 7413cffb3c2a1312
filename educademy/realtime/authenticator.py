"""
Connection authenticator for the realtime gateway.

Turns a raw credential plus handshake metadata into an authenticated
identity, or a typed rejection. Every outcome is written to the security
audit sink. Authentication never touches the session registry, so a failed
attempt leaves no state behind.
"""

from dataclasses import dataclass
from typing import Any

from ..auth.tokens import decode_access_token, extract_user_id
from ..config.models import AuthConfig
from ..error_types import ErrorSeverity
from ..exceptions import (
    AccountInactiveError,
    AuthenticationError,
    InvalidCredentialError,
    MissingCredentialError,
    UnknownUserError,
)
from ..persistence.protocols import AuditSinkProtocol, PersistenceProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import create_error_context

logger = get_logger(__name__)


@dataclass(frozen=True)
class HandshakeInfo:
    """Connection metadata available before authentication."""

    ip_address: str | None = None
    user_agent: str | None = None
    headers: dict[str, str] | None = None
    query_params: dict[str, str] | None = None


@dataclass(frozen=True)
class AuthResult:
    """An authenticated identity."""

    user_id: int
    role: str
    display_name: str
    email: str | None = None


def extract_credential(handshake: HandshakeInfo) -> str | None:
    """
    Find a bearer token in the handshake.

    Looks, in order, at the ``Authorization: Bearer`` header, the ``token``
    query parameter, and a ``Sec-WebSocket-Protocol`` of the form
    ``bearer, <token>``.

    Returns:
        The token, or None when no source carries one
    """
    headers = {k.lower(): v for k, v in (handshake.headers or {}).items()}

    authorization = headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token

    token = (handshake.query_params or {}).get("token")
    if token:
        return token

    protocol_header = headers.get("sec-websocket-protocol", "")
    parts = [p.strip() for p in protocol_header.split(",") if p.strip()]
    if len(parts) >= 2 and parts[0].lower() == "bearer":
        return parts[1]

    return None


class ConnectionAuthenticator:
    """Validates credentials presented by connecting clients."""

    def __init__(self, persistence: PersistenceProtocol, audit: AuditSinkProtocol, auth_config: AuthConfig):
        self._persistence = persistence
        self._audit = audit
        self._auth_config = auth_config

    async def authenticate(self, raw_credential: str | None, handshake: HandshakeInfo) -> AuthResult:
        """
        Authenticate a connecting client.

        Args:
            raw_credential: Bearer token, possibly absent
            handshake: Source address and user agent of the connection

        Returns:
            AuthResult: The authenticated identity

        Raises:
            MissingCredentialError: No credential supplied
            InvalidCredentialError: Signature, expiry or claim check failed
            UnknownUserError: The subject does not exist
            AccountInactiveError: The subject's account is deactivated
        """
        audit_context: dict[str, Any] = {
            "ip_address": handshake.ip_address,
            "user_agent": handshake.user_agent,
        }
        subject: int | None = None
        try:
            if not raw_credential:
                raise MissingCredentialError(
                    "No authentication token provided",
                    context=create_error_context(operation="socket_authenticate"),
                    user_friendly="Authentication token required",
                )

            claims = decode_access_token(raw_credential, self._auth_config)
            subject = extract_user_id(claims)

            user = await self._persistence.find_user(subject)
            if user is None:
                raise UnknownUserError(
                    f"Token subject {subject} does not exist",
                    context=create_error_context(operation="socket_authenticate", user_id=subject),
                    user_friendly="Invalid user",
                )
            if not user.is_active:
                raise AccountInactiveError(
                    f"User {subject} is inactive",
                    context=create_error_context(operation="socket_authenticate", user_id=subject),
                    user_friendly="Account is inactive",
                )
        except AuthenticationError as e:
            self._audit.log_security_event(
                "socket_auth_failed",
                ErrorSeverity.HIGH if isinstance(e, InvalidCredentialError) else ErrorSeverity.MEDIUM,
                {**audit_context, "failure_reason": e.reason},
                subject_user_id=subject,
            )
            raise

        result = AuthResult(user_id=user.id, role=user.role, display_name=user.display_name, email=user.email)
        self._audit.log_security_event(
            "socket_auth_succeeded",
            ErrorSeverity.LOW,
            {**audit_context, "role": user.role},
            subject_user_id=user.id,
        )
        logger.info("Socket authenticated", user_id=user.id, role=user.role)
        return result

    def record_timeout(self, handshake: HandshakeInfo) -> None:
        """Audit a connection dropped for not authenticating in time."""
        self._audit.log_security_event(
            "socket_auth_timeout",
            ErrorSeverity.MEDIUM,
            {"ip_address": handshake.ip_address, "user_agent": handshake.user_agent},
        )
