"""
Favorites-sync backend - aiohttp.web application.

Routes (all under /api):
    GET    /health
    GET    /favorites/{user_id}
    POST   /favorites
    DELETE /favorites/{user_id}/{idiom}/{language}[?type=idioms]
    POST   /favorites/sync

Audio sent with a new favorite is stored as raw PCM under the media
directory and served from /media/<file>.
"""

import hashlib
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
from aiohttp import web
from loguru import logger

from ..audio import decode
from ..config import Config
from ..errors import AudioFailure, CapacityExceeded
from ..utils.parsing import TextParser
from .database import FavoritesDatabase

DB_KEY = web.AppKey("db", FavoritesDatabase)
MEDIA_DIR_KEY = web.AppKey("media_dir", Path)

MAX_BODY_BYTES = 50 * 1024 * 1024


def _json_error(status: int, message: str, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map domain and unexpected errors to JSON responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except CapacityExceeded as e:
        logger.warning(f"Capacity reached on {request.path}")
        return _json_error(409, e.message, limit=e.limit)
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return _json_error(500, "Internal server error")


def _media_name(user_id: str, idiom: str, language: str, kind: str) -> str:
    digest = hashlib.sha256(f"{user_id}|{idiom}|{language}|{kind}".encode("utf-8")).hexdigest()
    return f"{digest[:32]}.pcm"


async def _store_audio(media_dir: Path, name: str, audio_data: str) -> None:
    """Decode base64 PCM and write it atomically."""
    pcm = decode(audio_data)
    media_dir.mkdir(parents=True, exist_ok=True)
    output_path = media_dir / name
    temp_path = media_dir / f"{name}.{uuid.uuid4().hex[:8]}.tmp"
    try:
        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(pcm)
        os.replace(temp_path, output_path)
    except OSError:
        if temp_path.exists():
            temp_path.unlink()
        raise


def _delete_audio(media_dir: Path, audio_url: Optional[str]) -> None:
    if not audio_url:
        return
    path = media_dir / Path(audio_url).name
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Audio deletion failed for {path.name}: {e}")


def _clean(value: Any) -> str:
    return TextParser.normalize_unicode(value).strip() if isinstance(value, str) else ""


def _examples(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [str(e).strip() for e in value if str(e).strip()]


async def _save_audio(request: web.Request, name: str, audio_data: Any) -> Optional[str]:
    """Store uploaded audio; returns its URL, or None when there is none or it is unusable."""
    if not audio_data or not isinstance(audio_data, str):
        return None
    try:
        await _store_audio(request.app[MEDIA_DIR_KEY], name, audio_data)
    except (AudioFailure, OSError) as e:
        logger.warning(f"Audio upload failed, saving without audio: {e}")
        return None
    return f"{request.url.origin()}/media/{name}"


async def _read_json(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "Invalid JSON body"}', content_type="application/json"
        )
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text='{"error": "JSON object expected"}', content_type="application/json"
        )
    return body


# ==================== Handlers ====================

async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "message": "FiguroAI Backend API"})


async def get_favorites(request: web.Request) -> web.Response:
    user_id = request.match_info["user_id"]
    favorites = request.app[DB_KEY].get_favorites(user_id)
    logger.info(f"Retrieved {len(favorites)} favorites for user {user_id}")
    return web.json_response({"favorites": favorites})


async def add_favorite(request: web.Request) -> web.Response:
    body = await _read_json(request)
    user_id = body.get("userId")
    idiom = _clean(body.get("idiom"))
    language = _clean(body.get("language"))
    info = body.get("info")
    kind = body.get("type") or "idioms"

    if not user_id or not idiom or not language or not isinstance(info, dict):
        return _json_error(400, "Missing required fields")
    examples = _examples(info.get("examples"))
    if not examples:
        return _json_error(400, "At least one example is required")

    db: FavoritesDatabase = request.app[DB_KEY]
    is_new = db.get_favorite(user_id, idiom, language, kind) is None
    if is_new and db.count(user_id) >= db.capacity:
        raise CapacityExceeded(db.capacity)

    audio_url = await _save_audio(request, _media_name(user_id, idiom, language, kind), body.get("audioData"))

    row_id = db.add_favorite({
        "user_id": user_id,
        "idiom": idiom,
        "language": language,
        "type": kind,
        "meaning": info.get("meaning", ""),
        "history": info.get("history", ""),
        "examples": examples,
        "audio_url": audio_url,
        "saved_at": body.get("savedAt"),
    })
    logger.info(f"Favorite saved for user {user_id}: {idiom}")
    return web.json_response({"success": True, "id": row_id, "audioUrl": audio_url})


async def delete_favorite(request: web.Request) -> web.Response:
    user_id = request.match_info["user_id"]
    idiom = _clean(request.match_info["idiom"])
    language = _clean(request.match_info["language"])
    kind = request.query.get("type")

    deleted = request.app[DB_KEY].delete_favorite(user_id, idiom, language, kind)
    for row in deleted:
        _delete_audio(request.app[MEDIA_DIR_KEY], row.get("audio_url"))

    logger.info(f"Favorite deleted for user {user_id}: {idiom}")
    return web.json_response({"success": bool(deleted)})


async def sync_favorites(request: web.Request) -> web.Response:
    """
    Server wins on collision; local-only favorites are added while there is room.

    Inline audio of a local-only favorite is stored like an upload to
    POST /favorites.
    """
    body = await _read_json(request)
    user_id = body.get("userId")
    local_favorites = body.get("localFavorites") or []
    if not user_id or not isinstance(local_favorites, list):
        return _json_error(400, "Missing required fields")

    db: FavoritesDatabase = request.app[DB_KEY]
    server_keys = {
        (f["idiom"], f["language"], f.get("type") or "idioms") for f in db.get_favorites(user_id)
    }

    added = 0
    for local in local_favorites:
        if not isinstance(local, dict):
            continue
        key = (_clean(local.get("idiom")), _clean(local.get("language")), local.get("type") or "idioms")
        examples = _examples(local.get("examples"))
        if not key[0] or not key[1] or not examples or key in server_keys:
            continue
        if db.count(user_id) >= db.capacity:
            logger.warning(f"Sync for user {user_id} stopped at capacity")
            break

        audio_url = local.get("audio_url") or await _save_audio(
            request, _media_name(user_id, *key), local.get("audio_data")
        )
        db.add_favorite({
            "user_id": user_id,
            "idiom": key[0],
            "language": key[1],
            "type": key[2],
            "meaning": local.get("meaning", ""),
            "history": local.get("history", ""),
            "examples": examples,
            "audio_url": audio_url,
            "saved_at": local.get("saved_at"),
        })
        server_keys.add(key)
        added += 1

    favorites = db.get_favorites(user_id)
    logger.info(f"Synced favorites for user {user_id}: {len(favorites)} total ({added} added)")
    return web.json_response({"favorites": favorites})


# ==================== Factory ====================

def create_app(config: Config, db: Optional[FavoritesDatabase] = None) -> web.Application:
    """
    Build the backend application.

    Args:
        config: Application configuration (paths, capacity)
        db: Database to use instead of the configured SQLite file

    Returns:
        Configured aiohttp application
    """
    app = web.Application(middlewares=[error_middleware], client_max_size=MAX_BODY_BYTES)
    app[DB_KEY] = db or FavoritesDatabase(config.server_db_file, config.MAX_FAVORITES)

    media_dir = Path(config.server_media_dir)
    media_dir.mkdir(parents=True, exist_ok=True)
    app[MEDIA_DIR_KEY] = media_dir

    app.router.add_get("/api/health", health)
    app.router.add_get("/api/favorites/{user_id}", get_favorites)
    app.router.add_post("/api/favorites", add_favorite)
    app.router.add_post("/api/favorites/sync", sync_favorites)
    app.router.add_delete("/api/favorites/{user_id}/{idiom}/{language}", delete_favorite)
    app.router.add_static("/media", str(media_dir))
    return app
