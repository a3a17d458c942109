from dropsniper.db.base import Base
from dropsniper.db.session import get_db, engine, SessionLocal
from dropsniper.db.tables import ALL_TABLE_NAMES, HISTORY_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "HISTORY_TABLE_NAMES"]
