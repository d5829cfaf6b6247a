# fleetcheck/db/session.py
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# SQLite file in the working directory unless DATABASE_URL says otherwise
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fleetcheck.db")

connect_args = (
    {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)  # required for SQLite + threads (scheduler runs in its own thread)

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,  # safer reconnects
    future=True,
)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    future=True,
)


def get_db():
    """Yield a DB session and make sure it's closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
