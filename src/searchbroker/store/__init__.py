"""Primary store interfaces — channel listing and the system key/value table."""

from searchbroker.store.base import ChannelStore, Store, StoreError, SystemNotFoundError, SystemStore

__all__ = ["ChannelStore", "Store", "StoreError", "SystemNotFoundError", "SystemStore"]
