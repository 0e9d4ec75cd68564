"""Learnable items and their explanations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class ItemKind(Enum):
    """What kind of phrase an item is. Values match the catalog sections."""
    IDIOM = "idioms"
    WORD = "words"


@dataclass(frozen=True)
class Item:
    """An idiom or word phrase in a given language."""

    text: str
    language: str
    kind: ItemKind = ItemKind.IDIOM


@dataclass(frozen=True)
class ItemDetail:
    """
    Explanation payload for an item.

    Replaced wholesale on navigation, never patched. The first example is
    the canonical one used for audio.
    """

    meaning: str
    background: str
    examples: Tuple[str, ...]

    def __post_init__(self):
        if not self.examples:
            raise ValueError("ItemDetail requires at least one example")
        object.__setattr__(self, "examples", tuple(self.examples))

    def speech_text(self, text: str) -> str:
        """Text sent to speech synthesis: the phrase followed by its first example."""
        return f"{text}. As in: {self.examples[0]}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meaning": self.meaning,
            "history": self.background,
            "examples": list(self.examples),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemDetail":
        return cls(
            meaning=str(data.get("meaning", "")),
            background=str(data.get("history", data.get("background", ""))),
            examples=tuple(str(e) for e in data.get("examples", [])),
        )


@dataclass(frozen=True)
class SearchResult:
    """One ranked search hit."""

    text: str
    language: str
    kind: ItemKind = ItemKind.IDIOM

    def to_item(self) -> Item:
        return Item(text=self.text, language=self.language, kind=self.kind)
