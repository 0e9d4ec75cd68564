"""Language catalog: configured languages and their idiom/word lists."""

import json
import random
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from ..errors import CatalogEmpty, ConfigurationMissing
from ..models import Item, ItemKind


class LanguageCatalog:
    """
    Static catalog of learnable items loaded from languages.json.

    Expected format:
        {"languages": {"English": {"idioms": [...], "words": [...]}, ...}}

    Language order follows the file; the first language is the default.
    """

    def __init__(self, languages: Dict[str, Dict[str, List[str]]]):
        if not languages:
            raise ConfigurationMissing("Invalid or empty language configuration.")
        self._languages = languages

    @classmethod
    def load(cls, path: str) -> "LanguageCatalog":
        """
        Load catalog from a JSON file.

        Raises:
            ConfigurationMissing: file missing, unreadable, or without languages
        """
        catalog_path = Path(path)
        try:
            with open(catalog_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load {catalog_path}: {e}")
            raise ConfigurationMissing() from e

        languages = data.get("languages") if isinstance(data, dict) else None
        if not isinstance(languages, dict) or not languages:
            logger.error(f"No languages configured in {catalog_path}")
            raise ConfigurationMissing()

        cleaned: Dict[str, Dict[str, List[str]]] = {}
        for language, sections in languages.items():
            if not isinstance(sections, dict):
                continue
            cleaned[language] = {
                kind: [str(t).strip() for t in sections.get(kind, []) if str(t).strip()]
                for kind in (k.value for k in ItemKind)
            }

        logger.info(f"Loaded language catalog with {len(cleaned)} languages")
        return cls(cleaned)

    @property
    def languages(self) -> List[str]:
        return list(self._languages.keys())

    @property
    def default_language(self) -> str:
        return self.languages[0]

    def supports(self, language: str, kind: Optional[ItemKind] = None) -> bool:
        """Check that a language (and optionally an item kind) is configured."""
        if language not in self._languages:
            return False
        if kind is None:
            return True
        return ItemKind(kind).value in self._languages[language]

    def items(self, language: str, kind: ItemKind) -> List[str]:
        """Get the configured phrases for a (language, kind) pair."""
        return list(self._languages.get(language, {}).get(ItemKind(kind).value, []))

    def pick_random(self, language: str, kind: ItemKind) -> Item:
        """
        Pick one item uniformly at random.

        Raises:
            CatalogEmpty: nothing configured for the pair
        """
        kind = ItemKind(kind)
        phrases = self.items(language, kind)
        if not phrases:
            raise CatalogEmpty(language, kind.value)
        return Item(text=random.choice(phrases), language=language, kind=kind)
