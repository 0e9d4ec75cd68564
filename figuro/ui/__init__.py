"""Flet UI components for FiguroAI."""

from .login import LoginView
from .session_screen import SessionScreen
from .theme import DesignTokens, section_card, show_snackbar

__all__ = [
    'LoginView',
    'SessionScreen',
    'DesignTokens',
    'section_card',
    'show_snackbar',
]
