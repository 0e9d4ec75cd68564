"""
FiguroAI: Flet Application
--------------------------

Learn idioms and words with AI explanations, audio and synced favorites.
"""

from typing import Optional

import flet as ft
from loguru import logger

from figuro.config import Config
from figuro.errors import ConfigurationMissing, FiguroError
from figuro.models import User
from figuro.session import AppContext, SessionOrchestrator
from figuro.ui import DesignTokens, LoginView, SessionScreen
from figuro.utils import setup_logger


class FiguroApp:
    """Main application controller: sign-in, then the session screen."""

    def __init__(self, page: ft.Page, context: AppContext) -> None:
        """
        Initialize the application.

        Args:
            page: Flet page instance
            context: Collaborators created once per process
        """
        self.page = page
        self.context = context
        self.orchestrator: Optional[SessionOrchestrator] = None
        self._setup_page()

        page.on_close = lambda _: page.run_task(self.shutdown)

        user = context.auth.current_user()
        if user is not None:
            self._on_login(user)
        else:
            self._show_login()

    def _setup_page(self) -> None:
        self.page.title = "FiguroAI"
        self.page.theme_mode = ft.ThemeMode.DARK
        self.page.bgcolor = DesignTokens.BG_PRIMARY
        self.page.theme = ft.Theme(
            color_scheme_seed=DesignTokens.ACCENT_PRIMARY,
            font_family=DesignTokens.FONT_SANS,
        )
        self.page.padding = 0
        self.page.window.min_width = 800
        self.page.window.min_height = 600

    def _show(self, control: ft.Control) -> None:
        self.page.controls.clear()
        self.page.add(control)

    def _show_login(self) -> None:
        self._show(LoginView(self.page, self.context.auth, self._on_login).container)

    def _on_login(self, user: User) -> None:
        logger.info(f"Signed in as {user.username}")
        self.page.run_task(self._start_session, user)

    async def _start_session(self, user: User) -> None:
        await self.context.open_favorites(user)
        if self.orchestrator is not None:
            await self.orchestrator.aclose()
        self.orchestrator = SessionOrchestrator(self.context)
        screen = SessionScreen(self.page, self.orchestrator, on_logout=self._on_logout)
        self._show(screen.container)
        try:
            await self.orchestrator.select_random_item()
        except FiguroError as e:
            logger.warning(f"Initial item failed: {e}")

    def _on_logout(self) -> None:
        self.page.run_task(self._logout)

    async def _logout(self) -> None:
        if self.orchestrator is not None:
            await self.orchestrator.aclose()
            self.orchestrator = None
        self.context.auth.logout()
        self.context.close_favorites()
        self._show_login()

    async def shutdown(self) -> None:
        if self.orchestrator is not None:
            await self.orchestrator.aclose()
        await self.context.aclose()


def configuration_error_screen(message: str) -> ft.Container:
    """Blocking screen shown when the language catalog cannot be loaded."""
    return ft.Container(
        content=ft.Column(
            controls=[
                ft.Icon(ft.Icons.ERROR_OUTLINE, size=48, color=DesignTokens.ACCENT_DANGER),
                ft.Text("Configuration Error", size=24, weight=ft.FontWeight.BOLD, color=ft.Colors.WHITE),
                ft.Text(message, color=DesignTokens.TEXT_SECONDARY, text_align=ft.TextAlign.CENTER),
            ],
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
            spacing=DesignTokens.SPACING_MD,
        ),
        alignment=ft.Alignment(0, 0),
        expand=True,
        padding=DesignTokens.SPACING_LG,
    )


def main(page: ft.Page) -> None:
    """
    Main entry point for Flet application.

    Args:
        page: Flet page instance
    """
    config = Config.from_env()
    setup_logger(config.LOG_LEVEL)

    try:
        context = AppContext.create(config)
    except ConfigurationMissing as e:
        logger.error(f"Configuration missing: {e}")
        page.add(configuration_error_screen(e.message))
        page.update()
        return
    except OSError as e:
        # PortAudio missing or no output device
        logger.error(f"Audio device unavailable: {e}")
        page.add(configuration_error_screen(f"Audio output is not available: {e}"))
        page.update()
        return

    FiguroApp(page, context)


if __name__ == "__main__":
    ft.run(main)
