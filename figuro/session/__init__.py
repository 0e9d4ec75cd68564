"""Session layer: view state machine, staleness tokens and app context."""

from .context import AppContext
from .orchestrator import BrowseMode, SessionOrchestrator
from .slots import RequestSlot, SlotTokens
from .views import (
    Detail,
    Error,
    FavoritesList,
    Idle,
    Loading,
    RelatedResults,
    SearchResults,
    SessionView,
    view_name,
)

__all__ = [
    'AppContext',
    'BrowseMode',
    'SessionOrchestrator',
    'RequestSlot',
    'SlotTokens',
    'Detail',
    'Error',
    'FavoritesList',
    'Idle',
    'Loading',
    'RelatedResults',
    'SearchResults',
    'SessionView',
    'view_name',
]
