from functools import lru_cache
from typing import Annotated
from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from ..settings import Settings, get_settings
from .models import Base

# Defaults to a local SQLite file. In production, set DATABASE_URL env var.

@lru_cache(maxsize=None)
def get_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)

@lru_cache(maxsize=None)
def get_sessionmaker(database_url: str) -> sessionmaker:
    return sessionmaker(bind=get_engine(database_url), autoflush=False, expire_on_commit=False)

def get_db(settings: Annotated[Settings, Depends(get_settings)]):
    db = get_sessionmaker(settings.database_url)()
    try:
        yield db
    finally:
        db.close()

def init_db(database_url: str | None = None):
    Base.metadata.create_all(get_engine(database_url or get_settings().database_url))
