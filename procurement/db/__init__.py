"""Persistence for approvable records."""

from procurement.db.memory import InMemoryApprovableStore
from procurement.db.store import SqlApprovableStore

__all__ = ["InMemoryApprovableStore", "SqlApprovableStore"]
