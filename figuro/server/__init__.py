"""Favorites-sync backend (aiohttp.web + SQLite)."""

from .app import create_app
from .database import FavoritesDatabase

__all__ = [
    'create_app',
    'FavoritesDatabase',
]
