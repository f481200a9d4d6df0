"""Ledger store adapters."""

from ...config import StoreBackend, StoreConfig
from ...ports.store import LedgerStorePort
from .supabase import SupabaseStoreAdapter
from .yaml_file import YamlStoreAdapter

__all__ = ["SupabaseStoreAdapter", "YamlStoreAdapter", "create_store_adapter"]


def create_store_adapter(config: StoreConfig) -> LedgerStorePort:
    """Create store adapter based on configuration."""
    if config.backend == StoreBackend.YAML:
        return YamlStoreAdapter(config.snapshot)
    elif config.backend == StoreBackend.SUPABASE:
        return SupabaseStoreAdapter(
            url=config.url, api_key=config.api_key, timeout=config.timeout
        )
    else:
        raise ValueError(f"Unknown store backend: {config.backend}")
