"""Caching for the instructor read path and its invalidation coordinator."""
