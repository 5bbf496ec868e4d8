"""
Database module - SQLAlchemy engine, sessions and schema.
"""
from placement_portal.db.database import engine, get_db_session, test_database_connection
from placement_portal.db.schema import metadata, create_schema

__all__ = [
    "engine",
    "get_db_session",
    "test_database_connection",
    "metadata",
    "create_schema",
]
