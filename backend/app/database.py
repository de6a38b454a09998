from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session


# --- 1. ENGINE (Shared by API, Celery workers and CLI scripts) ---
def build_engine(database_url: str, pool_size: int = 10, max_overflow: int = 10) -> Engine:
    """
    Creates the process-wide engine.
    The pool is bounded (pool_size + max_overflow) so a long-running worker
    cannot starve the API of connections.
    """
    if database_url.startswith("sqlite"):
        # SQLite (tests / local runs) does not take queue pool sizing arguments
        return create_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
    )


# --- 2. SESSION FACTORY ---
def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False
    )


# --- 3. MODELS BASE ---
class Base(DeclarativeBase):
    pass
