"""
Login View
----------

Username/password form against the demo user table.
"""

from typing import Callable, Optional

import flet as ft
from loguru import logger

from ..errors import StorageFailure
from ..models import User
from ..services import AuthService
from .theme import DesignTokens


class LoginView:
    """Sign-in form; calls on_login with the authenticated user."""

    def __init__(self, page: ft.Page, auth: AuthService, on_login: Callable[[User], None]) -> None:
        """
        Initialize the login view.

        Args:
            page: Flet page instance
            auth: Credential checker
            on_login: Called after a successful sign-in
        """
        self.page = page
        self.auth = auth
        self.on_login = on_login

        self._username_field: Optional[ft.TextField] = None
        self._password_field: Optional[ft.TextField] = None
        self._error_text: Optional[ft.Text] = None

        self._container = self._build_view()

    @property
    def container(self) -> ft.Container:
        return self._container

    def _build_view(self) -> ft.Container:
        self._username_field = ft.TextField(
            label="Username",
            autofocus=True,
            border_color=ft.Colors.WHITE24,
            width=320,
            on_submit=self._on_submit,
        )
        self._password_field = ft.TextField(
            label="Password",
            password=True,
            can_reveal_password=True,
            border_color=ft.Colors.WHITE24,
            width=320,
            on_submit=self._on_submit,
        )
        self._error_text = ft.Text("", color=DesignTokens.ACCENT_DANGER, size=13)

        return ft.Container(
            content=ft.Column(
                controls=[
                    ft.Icon(ft.Icons.TRANSLATE_ROUNDED, size=48, color=ft.Colors.INDIGO_200),
                    ft.Text("FiguroAI", size=28, weight=ft.FontWeight.BOLD, color=ft.Colors.WHITE),
                    ft.Text("Sign in to save your favorites", color=DesignTokens.TEXT_SECONDARY),
                    self._username_field,
                    self._password_field,
                    self._error_text,
                    ft.ElevatedButton("Sign in", width=320, on_click=self._on_submit),
                    ft.Text("Demo: demo / demo123", size=12, color=DesignTokens.TEXT_MUTED),
                ],
                horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                spacing=DesignTokens.SPACING_MD,
            ),
            alignment=ft.Alignment(0, 0),
            expand=True,
        )

    def _on_submit(self, e: ft.ControlEvent) -> None:
        username = (self._username_field.value or "").strip()
        password = self._password_field.value or ""
        if not username or not password:
            self._error_text.value = "Please enter username and password."
            self.page.update()
            return

        user = self.auth.authenticate(username, password)
        if user is None:
            self._error_text.value = "Invalid username or password."
            self._password_field.value = ""
            self.page.update()
            return

        self._error_text.value = ""
        try:
            self.auth.save_current_user(user)
        except StorageFailure as err:
            logger.warning(f"Could not remember signed-in user: {err}")
        self.on_login(user)
