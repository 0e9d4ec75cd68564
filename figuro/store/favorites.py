"""
Favorites Store - write-through cache of a user's bookmarks.

The in-memory list is backed by durable local storage and, in the
remote-backed variant, mirrored to the favorites backend. Which variant
serves a session is decided once at startup by a health check.

Invariants:
- newest first, at most `capacity` entries
- one entry per key: re-adding replaces in place
- a full list rejects new keys with CapacityExceeded; nothing is evicted
- a read right after add/remove observes it, before any remote confirmation
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ..errors import CapacityExceeded, RemoteStoreError, StorageFailure
from ..models import AudioRef, Favorite
from .local_storage import LocalStorage
from .remote_client import FavoritesApiClient

DEFAULT_CAPACITY = 50
STORAGE_VERSION = 1


@dataclass(frozen=True)
class AddResult:
    """Outcome of FavoritesStore.add()."""

    accepted: bool
    audio_ref: Optional[AudioRef] = None
    remote: bool = False


def merge_favorites(
    server: Iterable[Favorite],
    local: Iterable[Favorite],
    capacity: int = DEFAULT_CAPACITY,
) -> List[Favorite]:
    """
    Merge two favorites lists.

    Server wins on key collision; local-only entries are added. A server
    row without audio keeps the local entry's audio. The result
    is ordered newest first and capped.
    """
    merged: Dict[str, Favorite] = {}
    for favorite in server:
        merged.setdefault(favorite.key, favorite)
    for favorite in local:
        kept = merged.get(favorite.key)
        if kept is None:
            merged[favorite.key] = favorite
        elif kept.audio_ref is None and favorite.audio_ref is not None:
            # Server row without audio: keep the cached local copy
            merged[favorite.key] = kept.with_audio(favorite.audio_ref)
    ordered = sorted(merged.values(), key=lambda f: f.saved_at, reverse=True)
    return ordered[:capacity]


def parse_favorites(rows: Any, user_id: str) -> List[Favorite]:
    """Deserialize stored or server rows, skipping entries that do not parse."""
    favorites = []
    for row in rows if isinstance(rows, list) else []:
        try:
            favorites.append(Favorite.from_dict(row, user_id=user_id))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping corrupt favorite entry: {e}")
    return favorites


class FavoritesStore(ABC):
    """
    Abstract favorites store for one signed-in user.

    Subclasses decide where writes are mirrored; local persistence and the
    list invariants live here.
    """

    def __init__(self, storage: LocalStorage, user_id: str, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize the store.

        Args:
            storage: Durable local key/value storage
            user_id: Owner of the favorites
            capacity: Maximum number of favorites
        """
        self.storage = storage
        self.user_id = user_id
        self.capacity = capacity
        self._favorites: List[Favorite] = []

    @property
    def storage_key(self) -> str:
        return f"favorites_{self.user_id}"

    @property
    def is_remote(self) -> bool:
        return False

    # ==================== Reads ====================

    def list(self) -> List[Favorite]:
        """Favorites, newest first."""
        return list(self._favorites)

    def get(self, key: str) -> Optional[Favorite]:
        for favorite in self._favorites:
            if favorite.key == key:
                return favorite
        return None

    def contains(self, key: str) -> bool:
        return self.get(key) is not None

    @property
    def count(self) -> int:
        return len(self._favorites)

    @property
    def is_full(self) -> bool:
        return len(self._favorites) >= self.capacity

    # ==================== Local persistence ====================

    def _load_local(self) -> List[Favorite]:
        record = self.storage.get(self.storage_key)
        if record is None:
            return []
        if not isinstance(record, dict) or record.get("version") != STORAGE_VERSION:
            logger.warning(f"Ignoring favorites record for {self.user_id} with unknown format")
            return []

        return parse_favorites(record.get("favorites"), self.user_id)[: self.capacity]

    def _persist(self, favorites: List[Favorite]) -> None:
        """Write the list durably, then make it current. Memory is untouched on failure."""
        record: Dict[str, Any] = {
            "version": STORAGE_VERSION,
            "favorites": [f.to_dict() for f in favorites],
        }
        self.storage.set(self.storage_key, record)
        self._favorites = list(favorites)

    def _put(self, favorite: Favorite) -> None:
        """Insert newest-first, or replace in place when the key exists."""
        updated = list(self._favorites)
        for index, existing in enumerate(updated):
            if existing.key == favorite.key:
                updated[index] = favorite
                self._persist(updated)
                return

        if len(updated) >= self.capacity:
            raise CapacityExceeded(self.capacity)
        self._persist([favorite] + updated)

    def _delete(self, key: str) -> Optional[Favorite]:
        removed = self.get(key)
        if removed is None:
            return None
        self._persist([f for f in self._favorites if f.key != key])
        return removed

    # ==================== Contract ====================

    async def load(self) -> List[Favorite]:
        """Load the durable local copy into memory."""
        self._favorites = self._load_local()
        logger.info(f"Loaded {len(self._favorites)} favorites for user {self.user_id}")
        return self.list()

    @abstractmethod
    async def add(self, favorite: Favorite) -> AddResult:
        """
        Add or replace a favorite.

        Raises:
            CapacityExceeded: list is full and the key is new
            StorageFailure: local durable write failed
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Remove by key. Returns True if something was removed."""
        pass

    async def close(self) -> None:
        pass


class LocalFavoritesStore(FavoritesStore):
    """Local-only store (backend unavailable for this session)."""

    async def add(self, favorite: Favorite) -> AddResult:
        self._put(favorite)
        return AddResult(accepted=True, audio_ref=favorite.audio_ref, remote=False)

    async def remove(self, key: str) -> bool:
        return self._delete(key) is not None


class RemoteFavoritesStore(FavoritesStore):
    """
    Local write-through store mirrored to the favorites backend.

    Remote failures fall back to the local result transparently; callers
    never need to know which path was taken.
    """

    def __init__(
        self,
        storage: LocalStorage,
        user_id: str,
        client: FavoritesApiClient,
        capacity: int = DEFAULT_CAPACITY,
    ):
        super().__init__(storage, user_id, capacity)
        self.client = client

    @property
    def is_remote(self) -> bool:
        return True

    async def load(self) -> List[Favorite]:
        """Load local favorites, then merge in the server copy (server wins)."""
        local = self._load_local()
        self._favorites = local
        try:
            rows = await self.client.list(self.user_id)
        except RemoteStoreError as e:
            logger.warning(f"Failed to load favorites from backend, using local copy: {e}")
            return self.list()

        server = parse_favorites(rows, self.user_id)
        merged = merge_favorites(server, local, self.capacity)
        try:
            self._persist(merged)
        except StorageFailure as e:
            logger.warning(f"Could not persist merged favorites: {e}")
            self._favorites = merged
        logger.info(f"Loaded {len(merged)} favorites for user {self.user_id} (server + local)")
        return self.list()

    async def add(self, favorite: Favorite) -> AddResult:
        # Local first: later reads must observe the write immediately
        self._put(favorite)
        inline = favorite.audio_ref

        try:
            result = await self.client.add(
                self.user_id, favorite, inline.data if inline else None
            )
        except CapacityExceeded:
            logger.warning(f"Backend rejected {favorite.text}: capacity reached")
            self._delete(favorite.key)
            raise
        except RemoteStoreError as e:
            logger.warning(f"Backend save failed, kept local only: {e}")
            return AddResult(accepted=True, audio_ref=inline, remote=False)

        audio_url = result.get("audioUrl") if isinstance(result, dict) else None
        audio_ref = AudioRef(url=audio_url) if audio_url else inline
        current = self.get(favorite.key)
        if current is not None and audio_url:
            try:
                self._put(current.with_audio(audio_ref))
            except StorageFailure as e:
                logger.warning(f"Could not store audio URL locally: {e}")
        return AddResult(accepted=True, audio_ref=audio_ref, remote=True)

    async def remove(self, key: str) -> bool:
        removed = self._delete(key)
        if removed is None:
            return False
        try:
            await self.client.remove(self.user_id, removed.text, removed.language, removed.kind.value)
        except RemoteStoreError as e:
            logger.warning(f"Failed to delete {removed.text} from backend: {e}")
        return True

    async def sync(self) -> List[Favorite]:
        """Push the local list to the backend and adopt the merged result."""
        try:
            rows = await self.client.sync(self.user_id, self.list())
        except RemoteStoreError as e:
            logger.warning(f"Favorites sync failed: {e}")
            return self.list()
        server = parse_favorites(rows, self.user_id)
        merged = merge_favorites(server, self._favorites, self.capacity)
        try:
            self._persist(merged)
        except StorageFailure as e:
            logger.warning(f"Could not persist synced favorites: {e}")
            self._favorites = merged
        return self.list()

    async def close(self) -> None:
        await self.client.close()


async def open_favorites_store(
    storage: LocalStorage,
    user_id: str,
    client: Optional[FavoritesApiClient] = None,
    capacity: int = DEFAULT_CAPACITY,
    healthy: Optional[bool] = None,
) -> FavoritesStore:
    """
    Pick the store variant for this session and load it.

    The backend health is checked at most once (skipped when the caller
    already knows it); the choice holds for the session lifetime.
    """
    if healthy is None:
        healthy = client is not None and await client.health_check()
    if client is not None and healthy:
        logger.info("Backend API is available, favorites are synced")
        store: FavoritesStore = RemoteFavoritesStore(storage, user_id, client, capacity)
    else:
        logger.info("Backend API not available, using local storage only")
        store = LocalFavoritesStore(storage, user_id, capacity)
    await store.load()
    return store
