"""
Lifecycle state machine for a single realtime connection.

Every connection walks the same path from handshake to teardown. Encoding the
path as a state machine makes out-of-order operations (registering twice,
draining after close) fail loudly instead of corrupting registry state.
"""

from datetime import UTC, datetime

from statemachine import State, StateMachine

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class ConnectionLifecycle(StateMachine):
    """
    State machine for one connection.

    States:
    - connecting: Socket accepted, credential not yet verified
    - authenticated: Credential verified, not yet in the registry
    - registered: In the registry, device being recorded
    - active: Pending notifications drained, handling client events
    - disconnecting: Teardown in progress
    - closed: Terminal; a reconnect is a new instance

    Transitions:
    - connecting -> authenticated: authenticate
    - connecting -> closed: reject (authentication failed or timed out)
    - authenticated -> registered: register
    - registered -> active: activate
    - authenticated/registered/active -> disconnecting: disconnect
    - disconnecting -> closed: close
    """

    connecting = State("Connecting", initial=True)
    authenticated = State("Authenticated")
    registered = State("Registered")
    active = State("Active")
    disconnecting = State("Disconnecting")
    closed = State("Closed", final=True)

    authenticate = connecting.to(authenticated)
    reject = connecting.to(closed)
    register = authenticated.to(registered)
    activate = registered.to(active)
    disconnect = active.to(disconnecting) | registered.to(disconnecting) | authenticated.to(disconnecting)
    close = disconnecting.to(closed)

    def __init__(self, connection_id: str):
        """
        Initialize the lifecycle.

        Args:
            connection_id: Connection this lifecycle belongs to
        """
        # Set attributes BEFORE super().__init__() because on_enter_state is called during init
        self.connection_id = connection_id
        self.entered_at: dict[str, datetime] = {}
        self.disconnect_reason: str | None = None

        super().__init__()

    def on_enter_state(self, state: State, event=None, **kwargs) -> None:
        """Record and log every transition."""
        self.entered_at[state.id] = datetime.now(UTC)
        logger.debug(
            "Connection state transition",
            connection_id=self.connection_id,
            trigger_event=str(event) if event else "initial",
            to_state=state.id,
        )

    def on_disconnect(self, reason: str = "unknown") -> None:
        self.disconnect_reason = reason

    @property
    def state_id(self) -> str:
        return self.current_state.id

    @property
    def is_closing(self) -> bool:
        """True once teardown has started."""
        return self.state_id in ("disconnecting", "closed")
