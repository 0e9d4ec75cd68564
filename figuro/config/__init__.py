"""Configuration module for FiguroAI."""

from .settings import Config
from .catalog import LanguageCatalog

__all__ = [
    'Config',
    'LanguageCatalog',
]
