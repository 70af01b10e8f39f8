from app.db.session import get_db, init_db, close_db, async_session_maker
from app.db.base import Base

__all__ = ["get_db", "init_db", "close_db", "async_session_maker", "Base"]
