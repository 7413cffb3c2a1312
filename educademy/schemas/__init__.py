"""Pydantic records exchanged between persistence, services and the API."""
