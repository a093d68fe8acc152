from datetime import datetime, timezone

import sqlalchemy
from sqlalchemy import Column, String
from sqlalchemy.orm import declarative_base
from uuid6 import uuid7

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column in this schema stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Base):
    __abstract__ = True
    id = Column(String(36), primary_key=True, default=lambda: str(uuid7()), index=True)
    created_at = Column(sqlalchemy.DateTime, default=utcnow, nullable=False)

# Note: Models will import this Base. Do not import models here to avoid circular imports.
# Import models in app/features/auth/models/__init__.py for metadata and migrations.
