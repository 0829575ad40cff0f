import os
import time
import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker

from .config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", settings.database_url)

def normalize_database_url(db_url: str) -> str:
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    if db_url.startswith("postgresql://") and "+psycopg" not in db_url:
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url

def create_engine_with_retries(db_url: str, retries: int = 3, backoff: int = 2):
    db_url = normalize_database_url(db_url)
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)

    # file-backed SQLite: WAL on every pooled connection, including the one the retry loop opens
    if db_url.startswith("sqlite") and db_url != "sqlite://" and ":memory:" not in db_url:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    for attempt in range(retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            break
        except Exception as e:
            if attempt < retries - 1:
                logger.warning(f"Database connection failed. Retrying in {backoff}s... ({e})")
                time.sleep(backoff)
                backoff *= 2
            else:
                logger.error(f"Failed all DB connection attempts for {db_url}.")
                raise

    return engine

engine = create_engine_with_retries(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
