"""Ports - interfaces for external dependencies."""

from .store import LedgerStorePort

__all__ = ["LedgerStorePort"]
