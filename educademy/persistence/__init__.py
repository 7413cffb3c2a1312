"""Persistence layer for Educademy: protocols, repositories and the async facade."""
