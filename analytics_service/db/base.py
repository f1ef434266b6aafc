"""Declarative base shared by ORM entities and rollup tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
