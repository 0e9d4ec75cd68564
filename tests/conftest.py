"""Shared fixtures and fakes."""

import asyncio
import base64
import struct
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from figuro.audio import AudioAsset, AudioDevice, AudioPlayer
from figuro.config import Config, LanguageCatalog
from figuro.models import Item, ItemDetail, ItemKind, SearchResult
from figuro.services import AuthService, ContentGateway
from figuro.session import AppContext
from figuro.store import LocalFavoritesStore, LocalStorage


def pcm_payload(*samples: int) -> str:
    """Base64 of little-endian 16-bit samples."""
    return base64.b64encode(struct.pack(f"<{len(samples)}h", *samples)).decode("ascii")


def make_detail(text: str) -> ItemDetail:
    return ItemDetail(
        meaning=f"Meaning of {text}",
        background=f"History of {text}",
        examples=(f"First example with {text}.", f"Second example with {text}."),
    )


class FakeGateway(ContentGateway):
    """
    Scriptable gateway.

    Calls can be held open with gates (asyncio.Event per text) or made to
    fail with errors (exception per text).
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.detail_gates: Dict[str, asyncio.Event] = {}
        self.detail_errors: Dict[str, Exception] = {}
        self.cross_gate: Optional[asyncio.Event] = None
        self.cross_result: Dict[str, str] = {}
        self.cross_by_text: Dict[str, Dict[str, str]] = {}
        self.cross_error: Optional[Exception] = None
        self.related: List[str] = []
        self.related_error: Optional[Exception] = None
        self.search_results: List[SearchResult] = []
        self.search_error: Optional[Exception] = None
        self.speech_payload: str = pcm_payload(0, 16384, -16384, 0)
        self.speech_error: Optional[Exception] = None

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def fetch_item_detail(self, text: str, language: str, kind: ItemKind) -> ItemDetail:
        self.calls.append(("fetch_item_detail", text, language, kind))
        if text in self.detail_gates:
            await self.detail_gates[text].wait()
        if text in self.detail_errors:
            raise self.detail_errors[text]
        return make_detail(text)

    async def fetch_related(self, text: str, language: str, kind: ItemKind) -> List[str]:
        self.calls.append(("fetch_related", text, language, kind))
        if self.related_error:
            raise self.related_error
        return list(self.related)

    async def fetch_cross_language_equivalents(
        self, text: str, source_language: str, target_languages: Sequence[str], kind: ItemKind
    ) -> Dict[str, str]:
        self.calls.append(("fetch_cross_language_equivalents", text, source_language, tuple(target_languages)))
        if self.cross_gate is not None:
            await self.cross_gate.wait()
        if self.cross_error:
            raise self.cross_error
        return dict(self.cross_by_text.get(text, self.cross_result))

    async def fetch_search_results(
        self, query: str, languages: Sequence[str], kind: ItemKind
    ) -> List[SearchResult]:
        self.calls.append(("fetch_search_results", query, tuple(languages), kind))
        if self.search_error:
            raise self.search_error
        return list(self.search_results)

    async def synthesize_speech(self, text: str) -> str:
        self.calls.append(("synthesize_speech", text))
        if self.speech_error:
            raise self.speech_error
        return self.speech_payload


class FakeDevice(AudioDevice):
    """Records playback instead of producing sound."""

    def __init__(self):
        self.started: List[AudioAsset] = []
        self.stops = 0
        self.closed = False
        self._on_end: Optional[Callable[[], None]] = None

    def start(self, asset: AudioAsset, on_end: Callable[[], None]) -> None:
        self.started.append(asset)
        self._on_end = on_end

    def stop(self) -> None:
        self.stops += 1

    def close(self) -> None:
        self.closed = True

    def finish(self) -> None:
        """Simulate the device reaching the end of the asset."""
        if self._on_end is not None:
            self._on_end()


CATALOG = {
    "English": {"idioms": ["Bite the bullet"], "words": ["Serendipity"]},
    "Spanish": {"idioms": ["Ser pan comido"], "words": []},
    "French": {"idioms": ["Poser un lapin"], "words": ["Flâner"]},
}


@pytest.fixture
def config(tmp_path):
    return Config(DATA_DIR=str(tmp_path / "data"), NOTICE_SECONDS=0.05)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def storage(config):
    return LocalStorage(config.storage_file)


@pytest.fixture
def context(config, gateway, device, storage):
    return AppContext(
        config=config,
        catalog=LanguageCatalog(CATALOG),
        gateway=gateway,
        player=AudioPlayer(device),
        storage=storage,
        auth=AuthService(storage),
    )


@pytest.fixture
def signed_in_context(context, storage):
    """Context with a local favorites store for user "2"."""
    context.favorites = LocalFavoritesStore(storage, "2", capacity=context.config.MAX_FAVORITES)
    return context


@pytest.fixture
def item():
    return Item(text="Bite the bullet", language="English", kind=ItemKind.IDIOM)
