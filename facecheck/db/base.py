"""Declarative base shared by every ORM model."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # Models annotate Column() attributes with plain types, not Mapped[]
    __allow_unmapped__ = True
