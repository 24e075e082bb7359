"""Database layer for lemrecon: async SQLAlchemy models, sessions and the record store."""

from lemrecon.db.connection import close_db, get_engine, get_session, get_session_factory, init_db
from lemrecon.db.store import COLLECTIONS, RecordStore, SQLRecordStore

__all__ = [
    "COLLECTIONS",
    "RecordStore",
    "SQLRecordStore",
    "close_db",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
]
