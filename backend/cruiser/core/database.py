from pathlib import Path

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session
from .settings import settings


def build_engine(url: str):
    connect_args = {}
    kwargs = {}
    if url.startswith("sqlite"):
        # check_same_thread=False is needed only for SQLite
        connect_args = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session gets an empty database
            kwargs["poolclass"] = StaticPool
        elif url.startswith("sqlite:///"):
            Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args, **kwargs)


engine = build_engine(settings.DATABASE_URL)

def create_db_and_tables():
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
