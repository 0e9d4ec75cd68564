"""Data models for FiguroAI."""

from .item import Item, ItemDetail, ItemKind, SearchResult
from .favorite import AudioRef, Favorite, favorite_key
from .user import Notice, User

__all__ = [
    'Item',
    'ItemDetail',
    'ItemKind',
    'SearchResult',
    'AudioRef',
    'Favorite',
    'favorite_key',
    'Notice',
    'User',
]
