"""
SQLAlchemy ORM Base Configuration
Provides the declarative base shared by every live data table.

Sessions are created by database.connection.Database so the engine is
configured in exactly one place.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass
