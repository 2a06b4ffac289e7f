"""
FastAPI dependencies for dependency injection.

The lock is a process-wide singleton; repositories and services are built
per request around the request's database session.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from shortlink_app.config import settings
from shortlink_app.database.connection import get_db
from shortlink_app.locks.factory import LockBackend, LockFactory
from shortlink_app.locks.strategies import LockStrategy
from shortlink_app.repositories.link_repository import LinkRepository
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.version_log import VersionLog


@lru_cache()
def get_lock() -> LockStrategy:
    """
    Get the per-link lock (singleton).

    Factory gets config from settings internally.
    """
    return LockFactory.create(LockBackend(settings.lock_backend))


def get_link_repository(db: Session = Depends(get_db)) -> LinkRepository:
    return LinkRepository(db)


def get_version_log(
    db: Session = Depends(get_db),
    links: LinkRepository = Depends(get_link_repository),
    lock: LockStrategy = Depends(get_lock),
) -> VersionLog:
    return VersionLog(db=db, links=links, lock=lock)


def get_link_service(
    db: Session = Depends(get_db),
    links: LinkRepository = Depends(get_link_repository),
    versions: VersionLog = Depends(get_version_log),
) -> LinkService:
    return LinkService(db=db, links=links, versions=versions)


def get_current_user_id(x_user_id: Optional[int] = Header(None)) -> Optional[int]:
    """
    Acting user, as set by the authentication gateway in front of the API.

    None means the call was made by the system.
    """
    return x_user_id
