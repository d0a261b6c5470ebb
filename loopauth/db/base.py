"""
Declarative base for the credential database models.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class that every ORM model inherits from."""
    pass
