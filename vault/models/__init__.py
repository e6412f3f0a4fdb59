"""Database models."""
from vault.models.base import Base, create_engine, create_session_factory, ensure_database, init_db
from vault.models.user import User  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "User",
    "create_engine",
    "create_session_factory",
    "ensure_database",
    "init_db",
]
