"""Tests for the connection lifecycle state machine."""

import pytest
from statemachine.exceptions import TransitionNotAllowed

from educademy.realtime.connection_state_machine import ConnectionLifecycle


class TestConnectionLifecycle:
    """Test lifecycle transitions."""

    def test_starts_connecting(self):
        lifecycle = ConnectionLifecycle("c1")

        assert lifecycle.state_id == "connecting"
        assert not lifecycle.is_closing
        assert "connecting" in lifecycle.entered_at

    def test_happy_path_to_closed(self):
        lifecycle = ConnectionLifecycle("c1")

        lifecycle.authenticate()
        lifecycle.register()
        lifecycle.activate()
        lifecycle.disconnect(reason="client_disconnect")
        assert lifecycle.is_closing
        lifecycle.close()

        assert lifecycle.state_id == "closed"
        assert lifecycle.disconnect_reason == "client_disconnect"

    def test_reject_from_connecting(self):
        lifecycle = ConnectionLifecycle("c1")

        lifecycle.reject()

        assert lifecycle.state_id == "closed"

    def test_cannot_register_before_authenticating(self):
        lifecycle = ConnectionLifecycle("c1")

        with pytest.raises(TransitionNotAllowed):
            lifecycle.register()

    def test_cannot_activate_after_close(self):
        lifecycle = ConnectionLifecycle("c1")
        lifecycle.authenticate()
        lifecycle.disconnect(reason="open_failed")
        lifecycle.close()

        with pytest.raises(TransitionNotAllowed):
            lifecycle.activate()
