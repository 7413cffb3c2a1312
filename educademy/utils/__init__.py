"""Shared helpers for the Educademy server."""
