"""
Session Orchestrator - owns what is currently displayed.

UI events call the async operations below; results come back through the
single `view` attribute plus a few flags outside the view union (error,
notice, audio state). Observers register with on_change() and re-render
from the orchestrator's state.

Every request category has its own staleness token (see SlotTokens). A
result is applied only when its token is still current, so a slow response
for an item the user has already left never overwrites the newer view.
Abandoned requests keep running in the background and are ignored.
"""

import asyncio
from dataclasses import replace
from enum import Enum
from typing import Callable, Coroutine, List, Optional, Sequence, Set

from loguru import logger

from ..audio import build_playable_buffer, decode, resolve_audio_ref
from ..errors import (
    AudioFailure,
    CapacityExceeded,
    CatalogEmpty,
    FiguroError,
    PreconditionFailed,
    RemoteStoreError,
    StorageFailure,
)
from ..models import AudioRef, Favorite, Item, ItemDetail, ItemKind, Notice, SearchResult, favorite_key
from .context import AppContext
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

SEARCH_FAILED_MESSAGE = "Sorry, the search failed. Please try again."
RELATED_FAILED_MESSAGE = "Could not find related items. Please try again later."


class BrowseMode(Enum):
    """What "next" walks through."""
    ALL = "all"
    FAVORITES = "favorites"


class SessionOrchestrator:
    """
    State machine behind the UI.

    Views: Idle -> Loading -> Detail | Error; Detail -> SearchResults |
    RelatedResults | FavoritesList | Loading; any of those back to Detail.
    Exactly one view is active; switching replaces it wholesale, which
    drops the related list, search results and cross-language map of the
    previous one.
    """

    def __init__(
        self,
        context: AppContext,
        language: Optional[str] = None,
        kind: ItemKind = ItemKind.IDIOM,
    ):
        """
        Initialize the orchestrator.

        Args:
            context: Collaborators created once per process
            language: Initial language selector (catalog default if omitted)
            kind: Initial item kind selector
        """
        self.context = context
        self.view: SessionView = Idle()
        self.language = language or context.catalog.default_language
        self.kind = ItemKind(kind)
        self.browse_mode = BrowseMode.ALL

        # Remembered "back" target of the related drill-down
        self.origin: Optional[Item] = None
        self.error: Optional[str] = None
        self.notice: Optional[Notice] = None
        self.is_playing = False
        self.is_audio_loading = False

        self._tokens = SlotTokens()
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Callable[["SessionOrchestrator"], None]] = []
        self._favorite_index = -1
        self._notice_timer: Optional[asyncio.TimerHandle] = None

    # ==================== Observation ====================

    def on_change(self, callback: Callable[["SessionOrchestrator"], None]) -> None:
        """
        Register a callback invoked after every state change.

        Args:
            callback: Called with the orchestrator
        """
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")

    def _set_view(self, view: SessionView) -> None:
        self.view = view
        self._notify()

    @property
    def favorites(self) -> List[Favorite]:
        store = self.context.favorites
        return store.list() if store is not None else []

    @property
    def is_favorite(self) -> bool:
        store = self.context.favorites
        if store is None or not isinstance(self.view, Detail):
            return False
        return store.contains(self._key_for(self.view.item))

    def _key_for(self, item: Item) -> str:
        return favorite_key(self.context.favorites.user_id, item.text, item.language, item.kind)

    # ==================== Internals ====================

    def _navigate(self) -> None:
        """Leave the current view: stop audio, make every in-flight request stale."""
        self._stop_playback()
        self._tokens.invalidate()
        self.error = None
        self.origin = None

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_background(self) -> None:
        """Wait for background work (cross-language lookups) to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _load_item(self, item: Item) -> None:
        self._navigate()
        token = self._tokens.issue(RequestSlot.DETAIL)
        self._set_view(Loading(item))
        logger.info(f"Loading {item.kind.value[:-1]} '{item.text}' ({item.language})")

        try:
            detail = await self.context.gateway.fetch_item_detail(item.text, item.language, item.kind)
        except FiguroError as e:
            if self._tokens.is_current(RequestSlot.DETAIL, token):
                logger.error(f"Failed to load '{item.text}': {e}")
                self._set_view(Error(e.message, item))
            return

        if not self._tokens.is_current(RequestSlot.DETAIL, token):
            logger.debug(f"Discarding stale detail for '{item.text}'")
            return
        self._show_detail(item, detail)

    def _show_detail(self, item: Item, detail: ItemDetail) -> None:
        """Render Detail now; cross-language equivalents follow in the background."""
        targets = [lang for lang in self.context.catalog.languages if lang != item.language]
        if not targets:
            self._set_view(Detail(item, detail, cross_language={}, cross_language_loading=False))
            return

        self._set_view(Detail(item, detail, cross_language=None, cross_language_loading=True))
        detail_token = self._tokens.current(RequestSlot.DETAIL)
        cross_token = self._tokens.issue(RequestSlot.CROSS_LANGUAGE)
        self._spawn(self._load_cross_language(item, targets, detail_token, cross_token))

    async def _load_cross_language(
        self, item: Item, targets: Sequence[str], detail_token: int, cross_token: int
    ) -> None:
        try:
            equivalents = await self.context.gateway.fetch_cross_language_equivalents(
                item.text, item.language, targets, item.kind
            )
        except FiguroError as e:
            logger.warning(f"Cross-language lookup failed for '{item.text}': {e}")
            equivalents = {}

        if not (
            self._tokens.is_current(RequestSlot.DETAIL, detail_token)
            and self._tokens.is_current(RequestSlot.CROSS_LANGUAGE, cross_token)
        ):
            return
        view = self.view
        if not isinstance(view, Detail) or view.item != item:
            return

        cross_language = {
            lang: text for lang, text in equivalents.items()
            if lang in targets and isinstance(text, str) and text.strip()
        }
        self._set_view(replace(view, cross_language=cross_language, cross_language_loading=False))

    # ==================== Item selection ====================

    async def select_random_item(
        self, language: Optional[str] = None, kind: Optional[ItemKind] = None
    ) -> None:
        """
        Show a random catalog item.

        Raises:
            CatalogEmpty: nothing configured for the pair; view is unchanged
                and the message is put in the error slot
        """
        language = language or self.language
        kind = ItemKind(kind or self.kind)
        try:
            item = self.context.catalog.pick_random(language, kind)
        except CatalogEmpty as e:
            self.error = e.message
            self._notify()
            raise
        await self._load_item(item)

    async def select_item(
        self, text: str, language: Optional[str] = None, kind: Optional[ItemKind] = None
    ) -> None:
        """
        Show an explicitly named item.

        Selecting the item already on screen fetches a fresh explanation.
        """
        item = Item(text=text, language=language or self.language, kind=ItemKind(kind or self.kind))
        await self._load_item(item)

    async def retry(self) -> None:
        """Re-attempt the item of the current Error view."""
        view = self.view
        if not isinstance(view, Error):
            raise PreconditionFailed("retry", view_name(view))
        if view.item is not None:
            await self._load_item(view.item)
        else:
            await self.select_random_item()

    async def next_item(self) -> None:
        """
        Advance to the next item.

        In favorites mode, cycles through saved favorites using their
        frozen detail (no gateway call). Falls back to a random item when
        there are no favorites.
        """
        if self.browse_mode is BrowseMode.FAVORITES:
            favorites = self.favorites
            if favorites:
                self._favorite_index = (self._favorite_index + 1) % len(favorites)
                self._show_favorite(favorites[self._favorite_index])
                return
            self.browse_mode = BrowseMode.ALL
        await self.select_random_item()

    def _show_favorite(self, favorite: Favorite) -> None:
        self._navigate()
        self.language = favorite.language
        self._set_view(Detail(favorite.item, favorite.detail))

    async def set_language(self, language: str) -> None:
        """Switch the language selector and show a random item in it."""
        if not self.context.catalog.supports(language):
            raise CatalogEmpty(language, self.kind.value)
        self.language = language
        self.browse_mode = BrowseMode.ALL
        await self.select_random_item()

    async def set_kind(self, kind: ItemKind) -> None:
        """Switch between idioms and words."""
        self.kind = ItemKind(kind)
        self.browse_mode = BrowseMode.ALL
        await self.select_random_item()

    # ==================== Search ====================

    async def search(
        self,
        query: str,
        languages: Optional[Sequence[str]] = None,
        kind: Optional[ItemKind] = None,
    ) -> None:
        """
        Search items across languages.

        A blank query makes no gateway call: it closes open search results
        and otherwise leaves the view alone.

        Args:
            query: Free text (exact, partial, misspelled or a description)
            languages: Languages to search (all configured if omitted)
            kind: Item kind (current selector if omitted)
        """
        query = (query or "").strip()
        if not query:
            self.clear_search()
            return

        catalog = self.context.catalog
        kind = ItemKind(kind or self.kind)
        allowed = [lang for lang in (languages or catalog.languages) if catalog.supports(lang, kind)]

        self._navigate()
        self.browse_mode = BrowseMode.ALL
        token = self._tokens.issue(RequestSlot.SEARCH)
        self._set_view(SearchResults(query, (), loading=True))

        try:
            found = await self.context.gateway.fetch_search_results(query, allowed, kind)
        except FiguroError as e:
            if self._tokens.is_current(RequestSlot.SEARCH, token):
                logger.error(f"Search for '{query}' failed: {e}")
                self.error = SEARCH_FAILED_MESSAGE
                self._set_view(SearchResults(query, (), loading=False))
            return

        if not self._tokens.is_current(RequestSlot.SEARCH, token):
            return

        # Untrusted generated output: keep only what this app can show
        results = tuple(
            r for r in found
            if r.language in allowed and catalog.supports(r.language, r.kind)
        )
        if len(results) < len(found):
            logger.debug(f"Dropped {len(found) - len(results)} unsupported search results")
        self._set_view(SearchResults(query, results, loading=False))

    def clear_search(self) -> None:
        """Close search results (SearchResults -> Idle)."""
        if not isinstance(self.view, SearchResults):
            return
        self._tokens.invalidate(RequestSlot.SEARCH)
        self.error = None
        self._set_view(Idle())

    async def select_search_result(self, result: SearchResult) -> None:
        await self._load_item(result.to_item())

    # ==================== Related drill-down ====================

    async def show_related(self, item: Optional[Item] = None) -> None:
        """
        Show items related to the one on screen.

        The origin is remembered outside the view so back_to_origin() works
        even when the lookup fails.

        Raises:
            PreconditionFailed: current view is not Detail (for item)
        """
        view = self.view
        if not isinstance(view, Detail) or (item is not None and item != view.item):
            raise PreconditionFailed("show_related", view_name(view))

        origin = view.item
        self._navigate()
        self.origin = origin
        token = self._tokens.issue(RequestSlot.RELATED)
        self._set_view(RelatedResults(origin, (), loading=True))

        try:
            related = await self.context.gateway.fetch_related(origin.text, origin.language, origin.kind)
        except FiguroError as e:
            if self._tokens.is_current(RequestSlot.RELATED, token):
                logger.error(f"Related lookup for '{origin.text}' failed: {e}")
                self._set_view(RelatedResults(origin, (), loading=False, error=RELATED_FAILED_MESSAGE))
            return

        if self._tokens.is_current(RequestSlot.RELATED, token):
            self._set_view(RelatedResults(origin, tuple(related), loading=False))

    async def select_related(self, text: str) -> None:
        """Open one of the related items (same language and kind as the origin)."""
        view = self.view
        if not isinstance(view, RelatedResults):
            raise PreconditionFailed("select_related", view_name(view))
        await self.select_item(text, view.origin.language, view.origin.kind)

    async def back_to_origin(self) -> None:
        """Return to the item the related list was opened from. No-op without one."""
        origin = self.origin
        if origin is None:
            return
        self.origin = None
        await self._load_item(origin)

    # ==================== Favorites ====================

    def show_favorites(self) -> None:
        """Show the saved list and switch "next" to favorites mode."""
        self._navigate()
        self.browse_mode = BrowseMode.FAVORITES
        self._favorite_index = -1
        self._set_view(FavoritesList(tuple(self.favorites)))

    async def select_favorite(self, favorite: Favorite) -> None:
        keys = [f.key for f in self.favorites]
        if favorite.key in keys:
            self._favorite_index = keys.index(favorite.key)
        await self.select_item(favorite.text, favorite.language, favorite.kind)

    async def show_all(self) -> None:
        """Leave favorites mode and show a random item."""
        self.browse_mode = BrowseMode.ALL
        await self.select_random_item()

    async def toggle_favorite(self) -> bool:
        """
        Save or remove the item on screen.

        Returns:
            True if the item is now a favorite

        Raises:
            PreconditionFailed: view is not Detail, or nobody is signed in
            CapacityExceeded: list is full (also shown as a notice)
            StorageFailure: local write failed (also shown as a notice)
        """
        view = self.view
        store = self.context.favorites
        if not isinstance(view, Detail):
            raise PreconditionFailed("toggle_favorite", view_name(view))
        if store is None:
            raise PreconditionFailed("toggle_favorite", "signed-out session")

        item = view.item
        key = self._key_for(item)

        if store.contains(key):
            try:
                await store.remove(key)
            except StorageFailure as e:
                self._show_notice(e.message)
                raise
            self._show_notice("Removed from favorites")
            if self.browse_mode is BrowseMode.FAVORITES and store.count == 0:
                self.browse_mode = BrowseMode.ALL
                await self.select_random_item()
            return False

        if store.is_full:
            error = CapacityExceeded(store.capacity)
            self._show_notice(error.message)
            raise error

        self._show_notice("Saving to favorites...")
        audio_ref = await self._prefetch_audio(item, view.detail)
        favorite = Favorite.create(store.user_id, item, view.detail, audio_ref)

        try:
            result = await store.add(favorite)
        except (CapacityExceeded, StorageFailure) as e:
            self._show_notice(e.message)
            raise

        where = "Saved to cloud!" if result.remote else "Saved locally!"
        self._show_notice(f"{where} ({store.count}/{store.capacity})")
        logger.info(f"Saved favorite '{item.text}' (remote={result.remote})")
        return True

    async def _prefetch_audio(self, item: Item, detail: ItemDetail) -> Optional[AudioRef]:
        """Best-effort speech for a new favorite; None when unavailable."""
        try:
            payload = await self.context.gateway.synthesize_speech(detail.speech_text(item.text))
        except FiguroError as e:
            logger.warning(f"Saving '{item.text}' without audio: {e}")
            return None
        return AudioRef(data=payload)

    # ==================== Audio ====================

    async def toggle_audio(self) -> None:
        """
        Play the canonical example of the item on screen, or stop playback.

        Failures go to the error slot; the view is left as it is.
        """
        if self.is_playing or self.is_audio_loading:
            self.stop_audio()
            return

        view = self.view
        if not isinstance(view, Detail):
            raise PreconditionFailed("toggle_audio", view_name(view))

        token = self._tokens.issue(RequestSlot.AUDIO)
        self.is_audio_loading = True
        self.error = None
        self._notify()

        config = self.context.config
        try:
            data = await self._resolve_audio(view)
            asset = build_playable_buffer(data, config.SAMPLE_RATE, config.CHANNELS)
            if not self._tokens.is_current(RequestSlot.AUDIO, token):
                return
            self.context.player.play(asset, on_finished=lambda _handle: self._playback_finished(token))
        except FiguroError as e:
            if self._tokens.is_current(RequestSlot.AUDIO, token):
                logger.error(f"Audio for '{view.item.text}' failed: {e}")
                self.is_audio_loading = False
                self.error = e.message
                self._notify()
            return

        self.is_audio_loading = False
        self.is_playing = True
        self._notify()

    async def _resolve_audio(self, view: Detail) -> bytes:
        store = self.context.favorites
        favorite = store.get(self._key_for(view.item)) if store is not None else None
        if favorite is not None and favorite.audio_ref is not None and not favorite.audio_ref.is_empty:
            try:
                return await resolve_audio_ref(favorite.audio_ref, self.context.fetch_audio_bytes)
            except (AudioFailure, RemoteStoreError) as e:
                logger.warning(f"Cached audio unusable, synthesizing instead: {e}")

        payload = await self.context.gateway.synthesize_speech(view.detail.speech_text(view.item.text))
        return decode(payload)

    def _playback_finished(self, token: int) -> None:
        if not self._tokens.is_current(RequestSlot.AUDIO, token):
            return
        self.is_playing = False
        self._notify()

    def _stop_playback(self) -> None:
        self._tokens.invalidate(RequestSlot.AUDIO)
        self.context.player.stop()
        self.is_playing = False
        self.is_audio_loading = False

    def stop_audio(self) -> None:
        self._stop_playback()
        self._notify()

    # ==================== Notices ====================

    def _show_notice(self, message: str) -> None:
        seconds = self.context.config.NOTICE_SECONDS
        notice = Notice.for_seconds(message, seconds)
        self.notice = notice
        self._cancel_notice_timer()
        self._notice_timer = asyncio.get_running_loop().call_later(seconds, self._expire_notice, notice)
        self._notify()

    def _expire_notice(self, notice: Notice) -> None:
        self._notice_timer = None
        if self.notice is notice:
            self.notice = None
            self._notify()

    def _cancel_notice_timer(self) -> None:
        if self._notice_timer is not None:
            self._notice_timer.cancel()
            self._notice_timer = None

    def dismiss_notice(self) -> None:
        self._cancel_notice_timer()
        self.notice = None
        self._notify()

    def dismiss_error(self) -> None:
        self.error = None
        self._notify()

    # ==================== Lifecycle ====================

    async def aclose(self) -> None:
        """Drop in-flight work and stop audio."""
        self._tokens.invalidate()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._stop_playback()
        self._cancel_notice_timer()
        logger.debug("Session closed")
