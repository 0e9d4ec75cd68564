"""
Application context - collaborators created once per process.

The orchestrator receives everything it talks to through this object
instead of reaching for module-level singletons.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from ..audio import AudioDevice, AudioPlayer, SoundDeviceOutput
from ..config import Config, LanguageCatalog
from ..errors import NoAudio
from ..models import User
from ..services import AuthService, ContentGateway, GeminiGateway
from ..store import (
    FavoritesApiClient,
    FavoritesStore,
    LocalStorage,
    RemoteFavoritesStore,
    open_favorites_store,
)


@dataclass
class AppContext:
    """Explicitly constructed dependencies of a session."""

    config: Config
    catalog: LanguageCatalog
    gateway: ContentGateway
    player: AudioPlayer
    storage: LocalStorage
    auth: AuthService
    api_client: Optional[FavoritesApiClient] = None
    favorites: Optional[FavoritesStore] = None
    backend_available: Optional[bool] = None

    @classmethod
    def create(cls, config: Config, device: Optional[AudioDevice] = None) -> "AppContext":
        """
        Wire production collaborators.

        Raises:
            ConfigurationMissing: language catalog could not be loaded
        """
        catalog = LanguageCatalog.load(config.CATALOG_FILE)
        storage = LocalStorage(config.storage_file)
        return cls(
            config=config,
            catalog=catalog,
            gateway=GeminiGateway(config),
            player=AudioPlayer(device or SoundDeviceOutput()),
            storage=storage,
            auth=AuthService(storage),
            api_client=FavoritesApiClient(config.FAVORITES_API_URL, timeout=config.TIMEOUT),
        )

    async def check_backend(self) -> bool:
        """Health check, performed once per process."""
        if self.backend_available is None:
            self.backend_available = (
                await self.api_client.health_check() if self.api_client is not None else False
            )
        return self.backend_available

    async def open_favorites(self, user: User) -> FavoritesStore:
        """Open the favorites store for a signed-in user; remote stores are synced once here."""
        if self.favorites is not None:
            await self.favorites.close()
        available = await self.check_backend()
        self.favorites = await open_favorites_store(
            self.storage,
            user.id,
            self.api_client if available else None,
            self.config.MAX_FAVORITES,
            healthy=available,
        )
        if isinstance(self.favorites, RemoteFavoritesStore):
            await self.favorites.sync()
        return self.favorites

    def close_favorites(self) -> None:
        """Forget the signed-in user's store (logout)."""
        self.favorites = None

    async def fetch_audio_bytes(self, url: str) -> bytes:
        if self.api_client is None:
            raise NoAudio("Cannot download cached audio without a favorites backend.")
        return await self.api_client.fetch_audio(url)

    async def aclose(self) -> None:
        """Release network sessions and the audio device."""
        self.player.close()
        await self.gateway.close()
        if self.api_client is not None:
            await self.api_client.close()
        logger.debug("Application context closed")
