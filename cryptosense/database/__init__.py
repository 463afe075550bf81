"""Persistence layer: engine/session wiring, ORM models and the rule store."""

from cryptosense.database.connection import (
    Base,
    normalize_database_url,
    create_engine,
    create_session_factory,
    init_db,
    close_db,
)
from cryptosense.database.rule_store import RuleStore

__all__ = [
    "Base",
    "normalize_database_url",
    "create_engine",
    "create_session_factory",
    "init_db",
    "close_db",
    "RuleStore",
]
