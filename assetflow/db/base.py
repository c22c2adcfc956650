"""Declarative base shared by all ORM models."""

from advanced_alchemy.base import UUIDAuditBase


class Base(UUIDAuditBase):
    """Base model with a UUID primary key and created/updated timestamps."""

    __abstract__ = True
