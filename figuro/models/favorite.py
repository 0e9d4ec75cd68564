"""Persisted bookmarks."""

import hashlib
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..utils.parsing import TextParser
from .item import Item, ItemDetail, ItemKind


def favorite_key(user_id: str, text: str, language: str, kind: ItemKind) -> str:
    """
    Derive the deterministic favorite key.

    Fields are NFC-normalized so that the same phrase typed with different
    Unicode forms maps to one bookmark. Case is significant, matching the
    backend's (user, idiom, language, type) identity.
    """
    parts = [
        str(user_id),
        TextParser.normalize_unicode(text).strip(),
        TextParser.normalize_unicode(language).strip(),
        ItemKind(kind).value,
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:32]


@dataclass(frozen=True)
class AudioRef:
    """Cached audio: inline base64 PCM or a remote URL."""

    data: Optional[str] = None
    url: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.data and not self.url


@dataclass(frozen=True)
class Favorite:
    """A bookmarked item with a frozen copy of its detail for offline rendering."""

    key: str
    text: str
    language: str
    kind: ItemKind
    detail: ItemDetail
    audio_ref: Optional[AudioRef] = None
    saved_at: float = field(default_factory=lambda: time.time() * 1000)

    @classmethod
    def create(
        cls,
        user_id: str,
        item: Item,
        detail: ItemDetail,
        audio_ref: Optional[AudioRef] = None,
    ) -> "Favorite":
        """Synthesize a favorite from the item currently displayed."""
        return cls(
            key=favorite_key(user_id, item.text, item.language, item.kind),
            text=item.text,
            language=item.language,
            kind=item.kind,
            detail=detail,
            audio_ref=audio_ref,
        )

    @property
    def item(self) -> Item:
        return Item(text=self.text, language=self.language, kind=self.kind)

    def with_audio(self, audio_ref: Optional[AudioRef]) -> "Favorite":
        return Favorite(
            key=self.key,
            text=self.text,
            language=self.language,
            kind=self.kind,
            detail=self.detail,
            audio_ref=audio_ref,
            saved_at=self.saved_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON storage and the sync API."""
        return {
            "key": self.key,
            "idiom": self.text,
            "language": self.language,
            "type": self.kind.value,
            **self.detail.to_dict(),
            "audio_data": self.audio_ref.data if self.audio_ref else None,
            "audio_url": self.audio_ref.url if self.audio_ref else None,
            "saved_at": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], user_id: Optional[str] = None) -> "Favorite":
        """
        Deserialize a stored or server-provided favorite.

        Server rows carry no key; it is re-derived when user_id is given.
        """
        text = str(data.get("idiom") or data.get("text") or "")
        language = str(data.get("language", ""))
        kind = ItemKind(data.get("type") or data.get("kind") or ItemKind.IDIOM.value)

        key = data.get("key")
        if user_id is not None or not key:
            key = favorite_key(user_id or "", text, language, kind)

        audio_data = data.get("audio_data") or None
        audio_url = data.get("audio_url") or None
        audio_ref = AudioRef(data=audio_data, url=audio_url) if (audio_data or audio_url) else None

        return cls(
            key=key,
            text=text,
            language=language,
            kind=kind,
            detail=ItemDetail.from_dict(data),
            audio_ref=audio_ref,
            saved_at=float(data.get("saved_at") or time.time() * 1000),
        )
