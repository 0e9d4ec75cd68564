"""Storage layer: durable local key/value store and favorites stores."""

from .local_storage import LocalStorage
from .remote_client import FavoritesApiClient
from .favorites import (
    AddResult,
    FavoritesStore,
    LocalFavoritesStore,
    RemoteFavoritesStore,
    merge_favorites,
    open_favorites_store,
)

__all__ = [
    "LocalStorage",
    "FavoritesApiClient",
    "AddResult",
    "FavoritesStore",
    "LocalFavoritesStore",
    "RemoteFavoritesStore",
    "merge_favorites",
    "open_favorites_store",
]
