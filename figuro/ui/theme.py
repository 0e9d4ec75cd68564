"""Shared design tokens and small control builders."""

import flet as ft


class DesignTokens:
    """Centralized design tokens for consistent styling."""
    # Colors - Deep dark theme
    BG_PRIMARY = "#121212"
    BG_SURFACE = "#1A1A1B"
    BG_CARD = "#242426"

    TEXT_PRIMARY = "#FFFFFF"
    TEXT_SECONDARY = "#B3B3B3"
    TEXT_MUTED = "#808080"

    ACCENT_PRIMARY = "#7C4DFF"
    ACCENT_DANGER = "#E57373"
    ACCENT_SUCCESS = "#81C784"
    ACCENT_WARNING = "#FFB74D"

    SPACING_SM = 8
    SPACING_MD = 16
    SPACING_LG = 24

    RADIUS_MD = 12

    FONT_SANS = "Inter, Roboto, Segoe UI, sans-serif"


def section_card(title: str, icon: str, controls: list) -> ft.Container:
    """Build a styled section card."""
    return ft.Container(
        content=ft.Column(
            controls=[
                ft.Row(
                    controls=[
                        ft.Icon(icon, size=20, color=ft.Colors.INDIGO_200),
                        ft.Text(title, size=16, weight=ft.FontWeight.BOLD, color=ft.Colors.WHITE),
                    ],
                    spacing=10,
                ),
                ft.Divider(height=1, color=ft.Colors.WHITE10),
                *controls,
            ],
            spacing=10,
        ),
        padding=20,
        border_radius=DesignTokens.RADIUS_MD,
        bgcolor=DesignTokens.BG_CARD,
    )


def show_snackbar(page: ft.Page, message: str, error: bool = False, duration_ms: int = 3000) -> None:
    """Show a snackbar notification, replacing any previous one."""
    snackbar = ft.SnackBar(
        content=ft.Row(
            controls=[
                ft.Icon(
                    ft.Icons.ERROR_OUTLINE if error else ft.Icons.CHECK_CIRCLE_OUTLINE,
                    color=DesignTokens.TEXT_PRIMARY,
                    size=20,
                ),
                ft.Text(message, color=DesignTokens.TEXT_PRIMARY, size=14),
            ],
            spacing=12,
        ),
        bgcolor=DesignTokens.ACCENT_DANGER if error else DesignTokens.ACCENT_SUCCESS,
        duration=duration_ms,
    )
    for ctrl in list(page.overlay):
        if isinstance(ctrl, ft.SnackBar):
            page.overlay.remove(ctrl)
    page.overlay.append(snackbar)
    snackbar.open = True
    page.update()
