"""Tests for figuro.store.favorites."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from figuro.errors import CapacityExceeded, RemoteStoreError, StorageFailure
from figuro.models import AudioRef, Favorite, Item, ItemKind, User
from figuro.store import (
    FavoritesApiClient,
    LocalFavoritesStore,
    RemoteFavoritesStore,
    merge_favorites,
    open_favorites_store,
)

from .conftest import make_detail

USER = "2"


def favorite(text: str, saved_at: float = 0, language: str = "English") -> Favorite:
    item = Item(text=text, language=language, kind=ItemKind.IDIOM)
    fav = Favorite.create(USER, item, make_detail(text))
    return Favorite(
        key=fav.key,
        text=fav.text,
        language=fav.language,
        kind=fav.kind,
        detail=fav.detail,
        saved_at=saved_at or fav.saved_at,
    )


@pytest.fixture
def store(storage):
    return LocalFavoritesStore(storage, USER, capacity=50)


@pytest.fixture
def client():
    client = MagicMock(spec=FavoritesApiClient)
    client.list = AsyncMock(return_value=[])
    client.add = AsyncMock(return_value={"success": True, "id": 1, "audioUrl": None})
    client.remove = AsyncMock(return_value=True)
    client.sync = AsyncMock(return_value=[])
    client.health_check = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


# ==================== Local store ====================

@pytest.mark.asyncio
async def test_add_is_newest_first_and_readable_immediately(store):
    await store.add(favorite("Break the ice"))
    await store.add(favorite("Spill the beans"))

    assert [f.text for f in store.list()] == ["Spill the beans", "Break the ice"]
    assert store.contains(favorite("Break the ice").key)
    assert store.count == 2


@pytest.mark.asyncio
async def test_same_key_replaces_in_place(store):
    await store.add(favorite("Break the ice"))
    await store.add(favorite("Spill the beans"))
    updated = favorite("Break the ice").with_audio(AudioRef(data="AAAA"))

    await store.add(updated)

    assert store.count == 2
    assert [f.text for f in store.list()] == ["Spill the beans", "Break the ice"]
    assert store.get(updated.key).audio_ref == AudioRef(data="AAAA")


@pytest.mark.asyncio
async def test_capacity_rejects_without_eviction(store):
    for i in range(50):
        await store.add(favorite(f"Idiom {i}"))
    assert store.is_full

    with pytest.raises(CapacityExceeded) as exc_info:
        await store.add(favorite("One too many"))

    assert exc_info.value.limit == 50
    assert store.count == 50
    assert not store.contains(favorite("One too many").key)
    assert store.contains(favorite("Idiom 0").key)


@pytest.mark.asyncio
async def test_replacing_when_full_is_allowed(store):
    for i in range(50):
        await store.add(favorite(f"Idiom {i}"))
    await store.add(favorite("Idiom 7").with_audio(AudioRef(url="http://x/7.pcm")))
    assert store.count == 50


@pytest.mark.asyncio
async def test_persisted_with_version_and_reloaded(storage, store):
    await store.add(favorite("Break the ice"))

    record = storage.get(f"favorites_{USER}")
    assert record["version"] == 1
    assert record["favorites"][0]["idiom"] == "Break the ice"

    reloaded = LocalFavoritesStore(storage, USER)
    await reloaded.load()
    assert [f.text for f in reloaded.list()] == ["Break the ice"]


@pytest.mark.asyncio
async def test_unknown_version_is_ignored(storage):
    storage.set(f"favorites_{USER}", {"version": 99, "favorites": [{"idiom": "x"}]})
    store = LocalFavoritesStore(storage, USER)
    assert await store.load() == []


@pytest.mark.asyncio
async def test_remove(store):
    fav = favorite("Break the ice")
    await store.add(fav)

    assert await store.remove(fav.key)
    assert not await store.remove(fav.key)
    assert store.count == 0


@pytest.mark.asyncio
async def test_storage_failure_leaves_list_unchanged(store, storage):
    await store.add(favorite("Break the ice"))
    storage.set = MagicMock(side_effect=StorageFailure("quota exceeded"))

    with pytest.raises(StorageFailure):
        await store.add(favorite("Spill the beans"))
    assert [f.text for f in store.list()] == ["Break the ice"]


# ==================== Merge ====================

def test_merge_server_wins_and_orders_newest_first():
    server_copy = favorite("Break the ice", saved_at=100).with_audio(AudioRef(url="http://server/a.pcm"))
    local_copy = favorite("Break the ice", saved_at=300)
    local_only = favorite("Spill the beans", saved_at=200)

    merged = merge_favorites([server_copy], [local_copy, local_only])

    assert [f.text for f in merged] == ["Spill the beans", "Break the ice"]
    assert merged[1].audio_ref == AudioRef(url="http://server/a.pcm")


def test_merge_keeps_local_audio_when_server_has_none():
    server_copy = favorite("Break the ice", saved_at=100)
    local_copy = favorite("Break the ice", saved_at=100).with_audio(AudioRef(data="AAAA"))

    merged = merge_favorites([server_copy], [local_copy])

    assert merged[0].audio_ref == AudioRef(data="AAAA")


@pytest.mark.asyncio
async def test_corrupt_server_rows_are_skipped_on_load(storage, client):
    client.list.return_value = [
        {"idiom": "No examples", "language": "English", "meaning": "m", "examples": []},
        "not a row",
        favorite("Break the ice").to_dict(),
    ]

    store = await open_favorites_store(storage, USER, client)

    assert isinstance(store, RemoteFavoritesStore)
    assert [f.text for f in store.list()] == ["Break the ice"]


def test_merge_is_capped():
    merged = merge_favorites([favorite(f"S{i}", saved_at=i + 1) for i in range(3)], [], capacity=2)
    assert [f.text for f in merged] == ["S2", "S1"]


# ==================== Remote store ====================

@pytest.mark.asyncio
async def test_remote_add_adopts_audio_url(storage, client):
    client.add.return_value = {"success": True, "id": 5, "audioUrl": "http://server/media/a.pcm"}
    store = RemoteFavoritesStore(storage, USER, client)
    fav = favorite("Break the ice").with_audio(AudioRef(data="AAAA"))

    result = await store.add(fav)

    assert result.remote
    assert result.audio_ref == AudioRef(url="http://server/media/a.pcm")
    assert store.get(fav.key).audio_ref == AudioRef(url="http://server/media/a.pcm")
    client.add.assert_awaited_once_with(USER, fav, "AAAA")


@pytest.mark.asyncio
async def test_remote_failure_falls_back_to_local(storage, client):
    client.add.side_effect = RemoteStoreError("connection refused")
    store = RemoteFavoritesStore(storage, USER, client)
    fav = favorite("Break the ice").with_audio(AudioRef(data="AAAA"))

    result = await store.add(fav)

    assert result.accepted
    assert not result.remote
    assert result.audio_ref == AudioRef(data="AAAA")
    assert store.contains(fav.key)


@pytest.mark.asyncio
async def test_remote_capacity_rolls_back(storage, client):
    client.add.side_effect = CapacityExceeded(50)
    store = RemoteFavoritesStore(storage, USER, client)
    fav = favorite("Break the ice")

    with pytest.raises(CapacityExceeded):
        await store.add(fav)
    assert not store.contains(fav.key)


@pytest.mark.asyncio
async def test_remote_load_merges_server_copy(storage, client):
    local = LocalFavoritesStore(storage, USER)
    await local.add(favorite("Local only", saved_at=100))
    client.list.return_value = [{
        "idiom": "Server only",
        "language": "English",
        "type": "idioms",
        "meaning": "m",
        "history": "h",
        "examples": ["e"],
        "audio_url": "http://server/media/s.pcm",
        "saved_at": 200,
    }]

    store = RemoteFavoritesStore(storage, USER, client)
    await store.load()

    assert [f.text for f in store.list()] == ["Server only", "Local only"]


@pytest.mark.asyncio
async def test_remote_load_failure_keeps_local(storage, client):
    await LocalFavoritesStore(storage, USER).add(favorite("Local only"))
    client.list.side_effect = RemoteStoreError("down")

    store = RemoteFavoritesStore(storage, USER, client)
    await store.load()
    assert [f.text for f in store.list()] == ["Local only"]


@pytest.mark.asyncio
async def test_remote_remove_ignores_backend_errors(storage, client):
    client.remove.side_effect = RemoteStoreError("down")
    store = RemoteFavoritesStore(storage, USER, client)
    fav = favorite("Break the ice")
    await store.add(fav)

    assert await store.remove(fav.key)
    assert not store.contains(fav.key)
    client.remove.assert_awaited_once_with(USER, "Break the ice", "English", "idioms")


# ==================== Variant selection ====================

@pytest.mark.asyncio
async def test_open_uses_remote_when_healthy(storage, client):
    store = await open_favorites_store(storage, USER, client)
    assert isinstance(store, RemoteFavoritesStore)
    client.health_check.assert_awaited_once()


@pytest.mark.asyncio
async def test_open_falls_back_when_unhealthy(storage, client):
    client.health_check.return_value = False
    store = await open_favorites_store(storage, USER, client)
    assert isinstance(store, LocalFavoritesStore)


@pytest.mark.asyncio
async def test_open_skips_check_when_health_known(storage, client):
    store = await open_favorites_store(storage, USER, client, healthy=False)
    assert isinstance(store, LocalFavoritesStore)
    client.health_check.assert_not_awaited()


@pytest.mark.asyncio
async def test_open_without_client_is_local(storage):
    store = await open_favorites_store(storage, USER)
    assert isinstance(store, LocalFavoritesStore)


@pytest.mark.asyncio
async def test_remote_sync_pushes_local_and_adopts_server(storage, client):
    store = RemoteFavoritesStore(storage, USER, client)
    local_only = favorite("Local only", saved_at=100)
    await store.add(local_only)
    client.sync.return_value = [
        dict(local_only.to_dict(), audio_url="http://server/media/l.pcm"),
        dict(favorite("Server only", saved_at=200).to_dict()),
    ]

    synced = await store.sync()

    client.sync.assert_awaited_once()
    assert client.sync.await_args.args[1][0].key == local_only.key
    assert [f.text for f in synced] == ["Server only", "Local only"]
    assert store.get(local_only.key).audio_ref == AudioRef(url="http://server/media/l.pcm")


@pytest.mark.asyncio
async def test_context_syncs_remote_store_on_login(context, client):
    context.api_client = client

    store = await context.open_favorites(User(id=USER, username="demo"))

    assert isinstance(store, RemoteFavoritesStore)
    assert context.backend_available
    client.sync.assert_awaited_once()

    await context.open_favorites(User(id=USER, username="demo"))
    client.health_check.assert_awaited_once()
