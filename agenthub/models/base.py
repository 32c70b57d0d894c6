"""Declarative base for the conversation store."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
