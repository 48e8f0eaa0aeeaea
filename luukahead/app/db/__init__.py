from luukahead.app.db.base import Base
from luukahead.app.db.session import Database, get_database, get_db

__all__ = [
    "Base",
    "Database",
    "get_database",
    "get_db",
]
