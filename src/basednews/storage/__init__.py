"""Relational storage for BasedNews."""

from __future__ import annotations

from .repository import Storage, StorageError  # noqa: F401
from .schema import Base  # noqa: F401

__all__ = ["Base", "Storage", "StorageError"]
