# services/api/lens_api/db.py

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import Settings

class Base(DeclarativeBase):
    pass

def make_engine(settings: Settings) -> Engine:
    kwargs = {"pool_pre_ping": True}
    if settings.DATABASE_URL.startswith("sqlite"):
        # sessions are opened from worker threads (asyncio.to_thread)
        kwargs = {"connect_args": {"check_same_thread": False}}
    return create_engine(settings.DATABASE_URL, **kwargs)

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
