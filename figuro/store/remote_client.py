"""HTTP client for the favorites-sync backend."""

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
from loguru import logger

from ..errors import CapacityExceeded, RemoteStoreError
from ..models import Favorite


class FavoritesApiClient:
    """
    Thin aiohttp client for the favorites backend.

    All failures other than a capacity rejection are raised as
    RemoteStoreError; callers decide whether to fall back to local storage.
    """

    def __init__(self, base_url: str, timeout: int = 30):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. http://localhost:3001/api
            timeout: Total request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                )
            return self._session

    async def close(self) -> None:
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, **kwargs) as response:
                if response.status == 409:
                    data = await response.json()
                    raise CapacityExceeded(int(data.get("limit", 50)))
                if response.status >= 400:
                    error = await response.text()
                    raise RemoteStoreError(f"HTTP {response.status}: {error[:200]}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RemoteStoreError(f"{method} {path} failed: {e}") from e

    async def health_check(self) -> bool:
        """Check if the backend is available."""
        try:
            await self._request("GET", "/health")
            return True
        except RemoteStoreError as e:
            logger.warning(f"Backend not available, using local storage only: {e}")
            return False

    async def list(self, user_id: str) -> List[Dict[str, Any]]:
        """Fetch all favorites for a user (newest first)."""
        data = await self._request("GET", f"/favorites/{quote(user_id, safe='')}")
        favorites = data.get("favorites", []) if isinstance(data, dict) else []
        logger.info(f"Fetched {len(favorites)} favorites from server")
        return favorites

    async def add(self, user_id: str, favorite: Favorite, audio_data: Optional[str] = None) -> Dict[str, Any]:
        """
        Save a favorite; the backend stores audio and returns its URL.

        Returns:
            {"success": bool, "id": int, "audioUrl": str | None}
        """
        body = {
            "userId": user_id,
            "idiom": favorite.text,
            "language": favorite.language,
            "type": favorite.kind.value,
            "info": favorite.detail.to_dict(),
            "audioData": audio_data,
            "savedAt": favorite.saved_at,
        }
        data = await self._request("POST", "/favorites", json=body)
        logger.info(f"Favorite saved to server: {favorite.text}")
        return data

    async def remove(self, user_id: str, text: str, language: str, kind: Optional[str] = None) -> bool:
        path = f"/favorites/{quote(user_id, safe='')}/{quote(text, safe='')}/{quote(language, safe='')}"
        params = {"type": kind} if kind else None
        data = await self._request("DELETE", path, params=params)
        return bool(data.get("success")) if isinstance(data, dict) else False

    async def sync(self, user_id: str, favorites: List[Favorite]) -> List[Dict[str, Any]]:
        """Merge local favorites with the server copy (server wins on collision)."""
        body = {"userId": user_id, "localFavorites": [f.to_dict() for f in favorites]}
        data = await self._request("POST", "/favorites/sync", json=body)
        merged = data.get("favorites", []) if isinstance(data, dict) else []
        logger.info(f"Synced favorites: {len(merged)} total")
        return merged

    async def fetch_audio(self, url: str) -> bytes:
        """Download cached audio bytes from a URL returned by add()."""
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise RemoteStoreError(f"Audio download failed: HTTP {response.status}")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteStoreError(f"Audio download failed: {e}") from e
