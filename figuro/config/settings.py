"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Project root is the parent of figuro/
BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

load_dotenv(BASE_DIR / ".env")


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Config:
    """Application-wide configuration."""

    # Gemini API
    GEMINI_API_KEY: str = ""
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_TTS_MODEL: str = "gemini-2.5-flash-preview-tts"
    TTS_VOICE: str = "Kore"

    # Favorites backend
    FAVORITES_API_URL: str = "http://localhost:3001/api"
    MAX_FAVORITES: int = 50

    # Audio: Gemini TTS returns 24kHz mono 16-bit PCM
    SAMPLE_RATE: int = 24000
    CHANNELS: int = 1

    TIMEOUT: int = 60
    NOTICE_SECONDS: float = 3.0
    LOG_LEVEL: str = "INFO"

    # Backend server
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 3001

    # Paths
    BASE_DIR: Path = BASE_DIR
    CATALOG_FILE: str = str(BASE_DIR / "languages.json")
    DATA_DIR: str = str(BASE_DIR / "data")
    SUPPORTED_KINDS: tuple = ("idioms", "words")

    @property
    def storage_file(self) -> str:
        """Client-side durable key/value file."""
        return str(Path(self.DATA_DIR) / "local_storage.json")

    @property
    def server_db_file(self) -> str:
        return str(Path(self.DATA_DIR) / "server" / "figuro.db")

    @property
    def server_media_dir(self) -> str:
        return str(Path(self.DATA_DIR) / "server" / "media")

    @classmethod
    def from_env(cls) -> "Config":
        """
        Build configuration from environment variables.

        Values from the project-root .env file are already loaded; real
        environment variables take precedence over it.
        """
        defaults = cls()
        return cls(
            GEMINI_API_KEY=os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY", ""),
            GEMINI_API_URL=os.environ.get("GEMINI_API_URL", defaults.GEMINI_API_URL),
            GEMINI_MODEL=os.environ.get("GEMINI_MODEL", defaults.GEMINI_MODEL),
            GEMINI_TTS_MODEL=os.environ.get("GEMINI_TTS_MODEL", defaults.GEMINI_TTS_MODEL),
            TTS_VOICE=os.environ.get("TTS_VOICE", defaults.TTS_VOICE),
            FAVORITES_API_URL=os.environ.get("FAVORITES_API_URL", defaults.FAVORITES_API_URL).rstrip("/"),
            MAX_FAVORITES=_env_int("MAX_FAVORITES", defaults.MAX_FAVORITES),
            SAMPLE_RATE=_env_int("SAMPLE_RATE", defaults.SAMPLE_RATE),
            CHANNELS=_env_int("CHANNELS", defaults.CHANNELS),
            TIMEOUT=_env_int("TIMEOUT", defaults.TIMEOUT),
            NOTICE_SECONDS=float(os.environ.get("NOTICE_SECONDS", defaults.NOTICE_SECONDS)),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", defaults.LOG_LEVEL).upper(),
            SERVER_HOST=os.environ.get("SERVER_HOST", defaults.SERVER_HOST),
            SERVER_PORT=_env_int("SERVER_PORT", defaults.SERVER_PORT),
            CATALOG_FILE=os.environ.get("CATALOG_FILE", defaults.CATALOG_FILE),
            DATA_DIR=os.environ.get("DATA_DIR", defaults.DATA_DIR),
        )
