"""
Session Screen - renders the orchestrator's view.

The screen never holds navigation state of its own: every event is
dispatched to SessionOrchestrator through page.run_task(), and the
orchestrator's on_change notification triggers a full re-render of the
content area from `orchestrator.view`.
"""

from typing import Callable, List, Optional

import flet as ft
from loguru import logger

from ..errors import FiguroError, PreconditionFailed
from ..models import Favorite, ItemKind, Notice
from ..session import (
    BrowseMode,
    Detail,
    Error,
    FavoritesList,
    Idle,
    Loading,
    RelatedResults,
    SearchResults,
    SessionOrchestrator,
)
from .theme import DesignTokens, section_card, show_snackbar


class SessionScreen:
    """Main screen: selectors, search box and the current view."""

    def __init__(
        self,
        page: ft.Page,
        orchestrator: SessionOrchestrator,
        on_logout: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize the screen.

        Args:
            page: Flet page instance
            orchestrator: Session state machine to render and drive
            on_logout: Called when the user signs out
        """
        self.page = page
        self.orchestrator = orchestrator
        self.on_logout = on_logout

        self._language_dropdown: Optional[ft.Dropdown] = None
        self._kind_dropdown: Optional[ft.Dropdown] = None
        self._search_field: Optional[ft.TextField] = None
        self._mode_text: Optional[ft.Text] = None
        self._error_banner: Optional[ft.Container] = None
        self._content: Optional[ft.Container] = None
        self._last_notice: Optional[Notice] = None

        self._container = self._build_view()
        orchestrator.on_change(lambda _: self.refresh())

    @property
    def container(self) -> ft.Container:
        return self._container

    # ==================== Dispatch ====================

    def _dispatch(self, operation, *args) -> None:
        """Run an orchestrator operation without blocking the UI."""
        async def runner():
            try:
                await operation(*args)
            except PreconditionFailed as e:
                show_snackbar(self.page, e.message, error=True)
            except FiguroError as e:
                # Already surfaced through the error slot or a notice
                logger.debug(f"{getattr(operation, '__name__', operation)} failed: {e}")

        self.page.run_task(runner)

    # ==================== Layout ====================

    def _build_view(self) -> ft.Container:
        catalog = self.orchestrator.context.catalog

        self._language_dropdown = ft.Dropdown(
            value=self.orchestrator.language,
            options=[ft.dropdown.Option(lang) for lang in catalog.languages],
            label="Language",
            width=200,
            on_select=lambda e: self._dispatch(self.orchestrator.set_language, e.control.value),
        )
        self._kind_dropdown = ft.Dropdown(
            value=self.orchestrator.kind.value,
            options=[
                ft.dropdown.Option(key=ItemKind.IDIOM.value, text="Idioms"),
                ft.dropdown.Option(key=ItemKind.WORD.value, text="Words"),
            ],
            label="Type",
            width=140,
            on_select=lambda e: self._dispatch(self.orchestrator.set_kind, ItemKind(e.control.value)),
        )
        self._search_field = ft.TextField(
            hint_text="Search idioms in any language...",
            prefix_icon=ft.Icons.SEARCH,
            expand=True,
            on_submit=lambda e: self._dispatch(self.orchestrator.search, e.control.value),
        )
        self._mode_text = ft.Text("", size=12, color=DesignTokens.TEXT_MUTED)

        toolbar = ft.Row(
            controls=[
                self._language_dropdown,
                self._kind_dropdown,
                self._search_field,
                ft.IconButton(
                    icon=ft.Icons.FAVORITE_ROUNDED,
                    tooltip="Favorites",
                    on_click=lambda _: self.orchestrator.show_favorites(),
                ),
                ft.IconButton(
                    icon=ft.Icons.SHUFFLE_ROUNDED,
                    tooltip="Random",
                    on_click=lambda _: self._dispatch(self.orchestrator.show_all),
                ),
                ft.IconButton(
                    icon=ft.Icons.LOGOUT_ROUNDED,
                    tooltip="Sign out",
                    on_click=lambda _: self.on_logout() if self.on_logout else None,
                ),
            ],
            spacing=DesignTokens.SPACING_SM,
        )

        self._error_banner = ft.Container(visible=False)
        self._content = ft.Container(expand=True)
        self._render_content()

        return ft.Container(
            content=ft.Column(
                controls=[toolbar, self._mode_text, self._error_banner, self._content],
                spacing=DesignTokens.SPACING_MD,
                expand=True,
                scroll=ft.ScrollMode.AUTO,
            ),
            padding=DesignTokens.SPACING_LG,
            expand=True,
        )

    # ==================== Rendering ====================

    def refresh(self) -> None:
        """Re-render from orchestrator state."""
        self._language_dropdown.value = self.orchestrator.language
        self._kind_dropdown.value = self.orchestrator.kind.value
        self._mode_text.value = (
            "Browsing favorites" if self.orchestrator.browse_mode is BrowseMode.FAVORITES else ""
        )
        self._render_error()
        self._render_content()
        self._render_notice()
        self.page.update()

    def _render_error(self) -> None:
        message = self.orchestrator.error
        self._error_banner.visible = bool(message)
        if not message:
            return
        self._error_banner.content = ft.Row(
            controls=[
                ft.Icon(ft.Icons.ERROR_OUTLINE, color=DesignTokens.ACCENT_DANGER),
                ft.Text(message, color=DesignTokens.ACCENT_DANGER, expand=True),
                ft.IconButton(icon=ft.Icons.CLOSE, on_click=lambda _: self.orchestrator.dismiss_error()),
            ],
        )

    def _render_notice(self) -> None:
        notice = self.orchestrator.notice
        if notice is None or notice is self._last_notice:
            return
        self._last_notice = notice
        seconds = self.orchestrator.context.config.NOTICE_SECONDS
        show_snackbar(self.page, notice.message, duration_ms=int(seconds * 1000))

    def _render_content(self) -> None:
        view = self.orchestrator.view
        if isinstance(view, Idle):
            body = self._render_idle()
        elif isinstance(view, Loading):
            body = self._render_loading(view)
        elif isinstance(view, Error):
            body = self._render_failure(view)
        elif isinstance(view, Detail):
            body = self._render_detail(view)
        elif isinstance(view, SearchResults):
            body = self._render_search(view)
        elif isinstance(view, RelatedResults):
            body = self._render_related(view)
        elif isinstance(view, FavoritesList):
            body = self._render_favorites(view)
        else:
            body = ft.Text(f"Unknown view {type(view).__name__}")
        self._content.content = body

    def _render_idle(self) -> ft.Control:
        return ft.Column(
            controls=[
                ft.Text("Pick a language and press shuffle to start.", color=DesignTokens.TEXT_SECONDARY),
                ft.ElevatedButton(
                    "Show me an idiom",
                    icon=ft.Icons.SHUFFLE_ROUNDED,
                    on_click=lambda _: self._dispatch(self.orchestrator.select_random_item),
                ),
            ],
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        )

    def _render_loading(self, view: Loading) -> ft.Control:
        label = f"Loading '{view.item.text}'..." if view.item else "Loading..."
        return ft.Row(
            controls=[ft.ProgressRing(width=24, height=24), ft.Text(label)],
            spacing=DesignTokens.SPACING_MD,
        )

    def _render_failure(self, view: Error) -> ft.Control:
        return section_card(
            "Something went wrong",
            ft.Icons.ERROR_OUTLINE,
            [
                ft.Text(view.message, color=DesignTokens.ACCENT_DANGER),
                ft.ElevatedButton(
                    "Try again",
                    icon=ft.Icons.REFRESH,
                    on_click=lambda _: self._dispatch(self.orchestrator.retry),
                ),
            ],
        )

    def _render_detail(self, view: Detail) -> ft.Control:
        orchestrator = self.orchestrator
        audio_icon = ft.Icons.STOP_ROUNDED if orchestrator.is_playing else ft.Icons.VOLUME_UP_ROUNDED
        favorite_icon = ft.Icons.FAVORITE if orchestrator.is_favorite else ft.Icons.FAVORITE_BORDER

        actions = ft.Row(
            controls=[
                ft.IconButton(
                    icon=audio_icon,
                    tooltip="Listen",
                    disabled=orchestrator.is_audio_loading,
                    on_click=lambda _: self._dispatch(orchestrator.toggle_audio),
                ),
                ft.IconButton(
                    icon=favorite_icon,
                    tooltip="Favorite",
                    disabled=orchestrator.context.favorites is None,
                    on_click=lambda _: self._dispatch(orchestrator.toggle_favorite),
                ),
                ft.TextButton("Related", on_click=lambda _: self._dispatch(orchestrator.show_related)),
                ft.TextButton("Next", on_click=lambda _: self._dispatch(orchestrator.next_item)),
            ],
        )

        controls: List[ft.Control] = [
            ft.Text(view.item.text, size=26, weight=ft.FontWeight.BOLD, color=DesignTokens.TEXT_PRIMARY),
            ft.Text(view.item.language, size=12, color=DesignTokens.TEXT_MUTED),
            actions,
            ft.Text("Meaning", weight=ft.FontWeight.BOLD),
            ft.Text(view.detail.meaning, selectable=True),
            ft.Text("Background", weight=ft.FontWeight.BOLD),
            ft.Text(view.detail.background, selectable=True),
            ft.Text("Examples", weight=ft.FontWeight.BOLD),
            *[ft.Text(f"- {example}", selectable=True) for example in view.detail.examples],
        ]
        controls.extend(self._render_cross_language(view))
        return section_card("Idiom" if view.item.kind is ItemKind.IDIOM else "Word", ft.Icons.TRANSLATE_ROUNDED, controls)

    def _render_cross_language(self, view: Detail) -> List[ft.Control]:
        if view.cross_language_loading:
            return [ft.Row([ft.ProgressRing(width=16, height=16), ft.Text("Finding equivalents...")])]
        if not view.cross_language:
            return []
        buttons = [
            ft.OutlinedButton(
                f"{language}: {text}",
                on_click=lambda _, t=text, lang=language: self._dispatch(
                    self.orchestrator.select_item, t, lang, view.item.kind
                ),
            )
            for language, text in view.cross_language.items()
        ]
        return [ft.Text("In other languages", weight=ft.FontWeight.BOLD), ft.Row(buttons, wrap=True)]

    def _render_search(self, view: SearchResults) -> ft.Control:
        if view.loading:
            body: List[ft.Control] = [ft.ProgressRing(width=24, height=24)]
        elif not view.results:
            body = [ft.Text("No matches found.", color=DesignTokens.TEXT_SECONDARY)]
        else:
            body = [
                ft.ListTile(
                    title=ft.Text(result.text),
                    subtitle=ft.Text(result.language),
                    on_click=lambda _, r=result: self._dispatch(self.orchestrator.select_search_result, r),
                )
                for result in view.results
            ]
        body.append(ft.TextButton("Clear search", on_click=lambda _: self._clear_search()))
        return section_card(f'Results for "{view.query}"', ft.Icons.SEARCH, body)

    def _clear_search(self) -> None:
        self._search_field.value = ""
        self.orchestrator.clear_search()

    def _render_related(self, view: RelatedResults) -> ft.Control:
        if view.loading:
            body: List[ft.Control] = [ft.ProgressRing(width=24, height=24)]
        elif view.error:
            body = [ft.Text(view.error, color=DesignTokens.ACCENT_DANGER)]
        else:
            body = [
                ft.ListTile(
                    title=ft.Text(text),
                    on_click=lambda _, t=text: self._dispatch(self.orchestrator.select_related, t),
                )
                for text in view.related
            ]
        body.append(
            ft.TextButton(
                f"Back to '{view.origin.text}'",
                icon=ft.Icons.ARROW_BACK,
                on_click=lambda _: self._dispatch(self.orchestrator.back_to_origin),
            )
        )
        return section_card(f"Related to '{view.origin.text}'", ft.Icons.HUB_ROUNDED, body)

    def _render_favorites(self, view: FavoritesList) -> ft.Control:
        store = self.orchestrator.context.favorites
        capacity = store.capacity if store is not None else 0
        if not view.favorites:
            body: List[ft.Control] = [ft.Text("No favorites yet.", color=DesignTokens.TEXT_SECONDARY)]
        else:
            body = [self._favorite_tile(favorite) for favorite in view.favorites]
        if store is not None:
            where = "Synced with the server" if store.is_remote else "Stored on this device"
            body.append(ft.Text(where, size=12, color=DesignTokens.TEXT_SECONDARY))
        return section_card(
            f"Favorites ({len(view.favorites)}/{capacity})", ft.Icons.FAVORITE_ROUNDED, body
        )

    def _favorite_tile(self, favorite: Favorite) -> ft.Control:
        return ft.ListTile(
            title=ft.Text(favorite.text),
            subtitle=ft.Text(f"{favorite.language} - {favorite.detail.meaning[:80]}"),
            on_click=lambda _: self._dispatch(self.orchestrator.select_favorite, favorite),
        )
