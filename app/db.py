# app/db.py

import logging

from sqlmodel import SQLModel, create_engine, Session

from app.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database.url

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False  # required for SQLite + FastAPI

# Engine = connection to the database
engine = create_engine(
    DATABASE_URL,
    echo=settings.database.echo,
    connect_args=connect_args,
)


def create_db_and_tables(bind=None):
    # Importing models registers the tables on SQLModel.metadata
    from app import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database tables ready")


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
