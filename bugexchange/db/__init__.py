from bugexchange.db.database import Base, get_db, init_db, close_db, engine, async_session_maker

__all__ = ["Base", "get_db", "init_db", "close_db", "engine", "async_session_maker"]
