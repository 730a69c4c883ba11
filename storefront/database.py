"""
Database connection and session.

Schema source of truth: storefront.models. On startup, Base.metadata.create_all(bind=engine)
creates the users table from the current models.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from storefront.config import get_settings

settings = get_settings()
# SQLite needs check_same_thread off because FastAPI runs sync endpoints in a thread pool
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=connect_args,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
