"""
Session views - what the UI shows.

Exactly one view is active at a time. Views are immutable and replaced
wholesale; state that belongs to a view (related list, cross-language map,
search results) disappears with it.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from ..models import Favorite, Item, ItemDetail, SearchResult


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Loading:
    item: Optional[Item] = None


@dataclass(frozen=True)
class Error:
    """Primary failure. Keeps the attempted item so retry can target it."""

    message: str
    item: Optional[Item] = None


@dataclass(frozen=True)
class Detail:
    item: Item
    detail: ItemDetail
    cross_language: Optional[Dict[str, str]] = None
    cross_language_loading: bool = False


@dataclass(frozen=True)
class SearchResults:
    query: str
    results: Tuple[SearchResult, ...] = ()
    loading: bool = False


@dataclass(frozen=True)
class RelatedResults:
    origin: Item
    related: Tuple[str, ...] = ()
    loading: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class FavoritesList:
    favorites: Tuple[Favorite, ...] = field(default_factory=tuple)


SessionView = Union[Idle, Loading, Error, Detail, SearchResults, RelatedResults, FavoritesList]


def view_name(view: SessionView) -> str:
    return type(view).__name__
