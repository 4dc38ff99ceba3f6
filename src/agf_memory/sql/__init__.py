"""Relational layer: the sqlite engine and SQL-only repositories."""

from .db import Database

__all__ = ["Database"]
