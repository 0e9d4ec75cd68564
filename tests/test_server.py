"""Tests for the favorites backend (figuro.server) and its HTTP client."""

import struct
import unicodedata

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from figuro.errors import CapacityExceeded
from figuro.models import AudioRef, Favorite, Item, ItemKind
from figuro.server import FavoritesDatabase, create_app
from figuro.store import FavoritesApiClient, LocalFavoritesStore, RemoteFavoritesStore

from .conftest import make_detail, pcm_payload

USER = "2"


def body(idiom: str, language: str = "English", **extra) -> dict:
    data = {
        "userId": USER,
        "idiom": idiom,
        "language": language,
        "type": "idioms",
        "info": {"meaning": "m", "history": "h", "examples": ["e1", "e2"]},
    }
    data.update(extra)
    return data


@pytest.fixture
def database(config):
    return FavoritesDatabase(config.server_db_file, capacity=3)


@pytest_asyncio.fixture
async def client(config, database):
    test_client = TestClient(TestServer(create_app(config, database)))
    await test_client.start_server()
    yield test_client
    await test_client.close()


# ==================== Endpoints ====================

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status == 200
    assert (await response.json())["status"] == "ok"


@pytest.mark.asyncio
async def test_add_list_and_delete(client):
    response = await client.post("/api/favorites", json=body("Break the ice", savedAt=100))
    assert response.status == 200
    assert (await response.json())["success"]
    await client.post("/api/favorites", json=body("Spill the beans", savedAt=200))

    response = await client.get(f"/api/favorites/{USER}")
    favorites = (await response.json())["favorites"]
    assert [f["idiom"] for f in favorites] == ["Spill the beans", "Break the ice"]
    assert favorites[1]["examples"] == ["e1", "e2"]

    response = await client.delete(f"/api/favorites/{USER}/Break the ice/English", params={"type": "idioms"})
    assert (await response.json()) == {"success": True}
    response = await client.delete(f"/api/favorites/{USER}/Break the ice/English")
    assert (await response.json()) == {"success": False}


@pytest.mark.asyncio
async def test_same_key_updates_in_place(client, database):
    await client.post("/api/favorites", json=body("Break the ice"))
    await client.post("/api/favorites", json=body("Break the ice", info={"meaning": "new", "history": "", "examples": ["x"]}))

    rows = database.get_favorites(USER)
    assert len(rows) == 1
    assert rows[0]["meaning"] == "new"


@pytest.mark.asyncio
async def test_missing_fields(client):
    response = await client.post("/api/favorites", json={"userId": USER, "idiom": "x"})
    assert response.status == 400

    response = await client.post("/api/favorites", data="not json", headers={"Content-Type": "application/json"})
    assert response.status == 400


@pytest.mark.asyncio
async def test_capacity_is_409(client, database):
    for text in ("A", "B", "C"):
        await client.post("/api/favorites", json=body(text))

    response = await client.post("/api/favorites", json=body("D"))

    assert response.status == 409
    assert (await response.json())["limit"] == 3
    assert database.count(USER) == 3


@pytest.mark.asyncio
async def test_audio_is_stored_and_served(client, config):
    response = await client.post("/api/favorites", json=body("Break the ice", audioData=pcm_payload(1, 2, 3)))
    audio_url = (await response.json())["audioUrl"]

    assert audio_url.startswith("http://")
    assert "/media/" in audio_url
    path = audio_url.split("/media/", 1)[1]
    media = await client.get(f"/media/{path}")
    assert media.status == 200
    assert await media.read() == struct.pack("<3h", 1, 2, 3)


@pytest.mark.asyncio
async def test_invalid_audio_is_dropped(client):
    response = await client.post("/api/favorites", json=body("Break the ice", audioData="AAAA"))
    data = await response.json()
    assert data["success"]
    assert data["audioUrl"] is None


@pytest.mark.asyncio
async def test_sync_server_wins_and_fills_to_capacity(client, database):
    await client.post("/api/favorites", json=body("Break the ice", savedAt=100))
    local = [
        {"idiom": "Break the ice", "language": "English", "type": "idioms", "meaning": "local", "saved_at": 900},
        {"idiom": "B", "language": "English", "meaning": "b", "examples": ["e"], "saved_at": 300},
        {"idiom": "C", "language": "English", "meaning": "c", "examples": ["e"], "saved_at": 200},
        {"idiom": "D", "language": "English", "meaning": "d", "examples": ["e"], "saved_at": 150},
    ]

    response = await client.post("/api/favorites/sync", json={"userId": USER, "localFavorites": local})
    favorites = (await response.json())["favorites"]

    assert [f["idiom"] for f in favorites] == ["B", "C", "Break the ice"]
    assert favorites[2]["meaning"] == "m"


@pytest.mark.asyncio
async def test_add_requires_an_example(client, database):
    response = await client.post(
        "/api/favorites", json=body("Break the ice", info={"meaning": "m", "history": "h", "examples": [" "]})
    )
    assert response.status == 400
    assert database.count(USER) == 0


@pytest.mark.asyncio
async def test_text_is_nfc_normalized_and_case_sensitive(client, database):
    composed = unicodedata.normalize("NFC", "Flâner")
    await client.post("/api/favorites", json=body(composed, "French"))
    await client.post("/api/favorites", json=body(unicodedata.normalize("NFD", composed), "French"))
    await client.post("/api/favorites", json=body("flâner", "French"))

    rows = database.get_favorites(USER)
    assert sorted(r["idiom"] for r in rows) == ["Flâner", "flâner"]


@pytest.mark.asyncio
async def test_sync_stores_inline_audio(client):
    local = [{
        "idiom": "Spill the beans", "language": "English", "type": "idioms",
        "meaning": "m", "examples": ["e"], "audio_data": pcm_payload(7, 8), "saved_at": 100,
    }]

    response = await client.post("/api/favorites/sync", json={"userId": USER, "localFavorites": local})
    audio_url = (await response.json())["favorites"][0]["audio_url"]

    media = await client.get("/media/" + audio_url.split("/media/", 1)[1])
    assert await media.read() == struct.pack("<2h", 7, 8)


# ==================== Client against the server ====================

@pytest_asyncio.fixture
async def api_client(client):
    api = FavoritesApiClient(str(client.make_url("/api")))
    yield api
    await api.close()


def favorite(text: str) -> Favorite:
    item = Item(text, "English", ItemKind.IDIOM)
    return Favorite.create(USER, item, make_detail(text), AudioRef(data=pcm_payload(4, 5)))


@pytest.mark.asyncio
async def test_client_round_trip(api_client):
    assert await api_client.health_check()

    result = await api_client.add(USER, favorite("Break the ice"), pcm_payload(4, 5))
    assert result["success"]

    rows = await api_client.list(USER)
    assert rows[0]["idiom"] == "Break the ice"
    assert await api_client.fetch_audio(result["audioUrl"]) == struct.pack("<2h", 4, 5)

    assert await api_client.remove(USER, "Break the ice", "English", "idioms")
    assert await api_client.list(USER) == []


@pytest.mark.asyncio
async def test_client_maps_409_to_capacity(api_client):
    for text in ("A", "B", "C"):
        await api_client.add(USER, favorite(text))

    with pytest.raises(CapacityExceeded) as exc_info:
        await api_client.add(USER, favorite("D"))
    assert exc_info.value.limit == 3


@pytest.mark.asyncio
async def test_client_health_check_when_down():
    api = FavoritesApiClient("http://127.0.0.1:9/api", timeout=2)
    assert not await api.health_check()
    await api.close()


# ==================== Database ====================

def test_database_capacity_and_delete_all_kinds(database):
    for kind in ("idioms", "words"):
        database.add_favorite({"user_id": USER, "idiom": "Flâner", "language": "French", "type": kind})
    database.add_favorite({"user_id": USER, "idiom": "Other", "language": "French"})

    with pytest.raises(CapacityExceeded):
        database.add_favorite({"user_id": USER, "idiom": "Fourth", "language": "French"})

    deleted = database.delete_favorite(USER, "Flâner", "French")
    assert len(deleted) == 2
    assert database.count(USER) == 1


# ==================== Remote store against the server ====================

@pytest.mark.asyncio
async def test_remote_load_skips_rows_without_examples(api_client, database, storage):
    database.add_favorite({"user_id": USER, "idiom": "Broken", "language": "English", "examples": []})
    await api_client.add(USER, favorite("Break the ice"))

    store = RemoteFavoritesStore(storage, USER, api_client)
    loaded = await store.load()
    synced = await store.sync()

    assert [f.text for f in loaded] == ["Break the ice"]
    assert [f.text for f in synced] == ["Break the ice"]


@pytest.mark.asyncio
async def test_offline_audio_survives_sync(api_client, storage):
    offline = favorite("Spill the beans")
    await LocalFavoritesStore(storage, USER).add(offline)

    store = RemoteFavoritesStore(storage, USER, api_client)
    await store.load()
    await store.sync()

    audio_ref = store.get(offline.key).audio_ref
    assert audio_ref is not None
    assert audio_ref.url is not None
    assert await api_client.fetch_audio(audio_ref.url) == struct.pack("<2h", 4, 5)


@pytest.mark.asyncio
async def test_case_variants_stay_separate_on_both_sides(api_client, storage):
    store = RemoteFavoritesStore(storage, USER, api_client)
    await store.add(favorite("Break the ice"))
    await store.add(favorite("break the ice"))

    assert store.count == 2
    assert len(await api_client.list(USER)) == 2
    assert len(await store.load()) == 2
