"""Database module for review persistence."""

from .db import (
    Base,
    SessionLocal,
    build_engine,
    build_session_factory,
    check_db_connection,
    engine,
    get_db,
    init_db,
)

__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "build_engine",
    "build_session_factory",
    "check_db_connection",
    "get_db",
    "init_db",
]
