"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Column, Integer, String, Text

from confessions.storage import Base


class Confession(Base):
    """
    An approved anonymous confession.

    Table: confessions
    Primary Key: seq (insertion order, breaks created_at ties)
    """
    __tablename__ = "confessions"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(String, nullable=False, index=True)  # ISO-8601 UTC string
    status = Column(String, nullable=False, index=True)
    sentiment = Column(String, nullable=True)
    policy_version = Column(String, nullable=False)
