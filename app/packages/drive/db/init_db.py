"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.file_record import FileRecord  # noqa: F401 - ensure table creation
from app.packages.drive.models.folder import Folder  # noqa: F401 - ensure table creation
from app.packages.drive.models.user import User  # noqa: F401 - ensure table creation

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist."""
    try:
        Base.metadata.create_all(bind=db_session.engine)
    except Exception:
        logger.exception("Failed to create tables during database initialization")
        raise
    logger.info("Database schema is ready (%s tables)", len(Base.metadata.tables))
