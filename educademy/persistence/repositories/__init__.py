"""SQLAlchemy async repositories."""
