"""Realtime connection and notification-delivery core."""
