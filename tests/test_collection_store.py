import json

import pytest

from client.api import APIClientError
from collection.storage import MemoryStorage
from collection.store import COLLECTION_KEY, CollectionStore, Session


class FakeCollectionsAPI:
    """In-memory stand-in for :class:`client.api.GameAPIClient`."""

    def __init__(self, rows=None, details=None):
        self.rows = list(rows or [])
        self.details = dict(details or {})
        self.fail_with: APIClientError | None = None
        self.calls: list[tuple] = []

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def list_collection(self, token):
        self.calls.append(("list", token))
        self._maybe_fail()
        return list(self.rows)

    def add_to_collection(self, token, game_id, game_data):
        self.calls.append(("add", token, game_id))
        self._maybe_fail()
        if any(row["game_id"] == game_id for row in self.rows):
            raise APIClientError("Game already in collection", status=400)
        row = {
            "id": f"row-{game_id}",
            "user_id": "alice",
            "game_id": game_id,
            "game_data": dict(game_data),
            "created_at": "2024-01-01T00:00:00+00:00",
        }
        self.rows.append(row)
        return row

    def remove_from_collection(self, token, game_id):
        self.calls.append(("remove", token, game_id))
        self._maybe_fail()
        self.rows = [row for row in self.rows if row["game_id"] != game_id]

    def get_game_details(self, game_id):
        self.calls.append(("details", game_id))
        return self.details.get(game_id)


class RecordingNotifier:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, level, message):
        self.messages.append((level, message))


def full_game(game_id, name, **extra):
    game = {
        "id": game_id,
        "name": name,
        "rating": 80.0,
        "platforms": [],
        "screenshots": [],
        "first_release_date": 1_500_000_000,
    }
    game.update(extra)
    return game


@pytest.fixture
def api():
    return FakeCollectionsAPI()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store(api, notifier):
    return CollectionStore.for_session(
        Session(user_id="alice", access_token="token-alice"),
        api=api,
        storage=MemoryStorage(),
        notifier=notifier,
        clock_ms=lambda: 1_700_000_000_000,
    )


def test_add_contains_remove(store, api, notifier):
    assert store.add(full_game(42, "Hades"))
    assert store.contains(42)
    assert store.contains("42")
    assert store.size() == 1
    assert store.items[0]["collectedAt"] == 1_700_000_000_000
    assert ("success", "Hades added to your collection!") in notifier.messages

    store.remove(42)

    assert not store.contains(42)
    assert store.size() == 0
    assert ("success", "Hades removed from your collection") in notifier.messages
    assert [call[0] for call in api.calls] == ["add", "remove"]


def test_duplicate_add_is_rejected_locally(store, api, notifier):
    store.add(full_game(42, "Hades"))

    assert not store.add(full_game(42, "Hades"))

    assert store.size() == 1
    assert ("error", "Hades is already in your collection") in notifier.messages
    assert [call[0] for call in api.calls] == ["add"]


def test_failed_remote_write_leaves_state_unchanged(store, api, notifier):
    api.fail_with = APIClientError("Failed to add to collection", status=500)

    assert not store.add(full_game(42, "Hades"))

    assert store.size() == 0
    assert ("error", "Failed to add to collection") in notifier.messages


def test_failed_remote_delete_keeps_item(store, api, notifier):
    store.add(full_game(42, "Hades"))
    api.fail_with = APIClientError("boom", status=500)

    store.remove(42)

    assert store.contains(42)
    assert ("error", "Failed to remove from collection") in notifier.messages


def test_partial_game_is_enriched_before_saving(api, notifier):
    api.details[7] = full_game(7, "Okami", developer="Clover Studio")
    store = CollectionStore.for_session(
        Session("alice", "token-alice"), api=api, storage=MemoryStorage(), notifier=notifier
    )

    store.add({"id": 7, "name": "Okami"})

    assert ("details", 7) in api.calls
    assert api.rows[0]["game_data"]["developer"] == "Clover Studio"
    assert store.items[0]["developer"] == "Clover Studio"


def test_load_maps_rows_to_games_with_collected_at(store, api):
    api.rows = [
        {"game_id": 1, "game_data": {"id": 1, "name": "A"}, "created_at": "2024-01-02T00:00:00Z"},
        {"game_id": 2, "game_data": None, "created_at": "2024-01-01T00:00:00Z"},
    ]

    items = store.load()

    assert items == [{"id": 1, "name": "A", "collectedAt": 1_704_153_600_000}]
    assert not store.is_loading


def test_load_falls_back_to_local_storage_on_remote_failure(api, notifier):
    storage = MemoryStorage({COLLECTION_KEY: json.dumps([{"id": 9, "name": "Cached"}])})
    store = CollectionStore.for_session(
        Session("alice", "token-alice"), api=api, storage=storage, notifier=notifier
    )
    api.fail_with = APIClientError("offline")

    assert [game["id"] for game in store.load()] == [9]


def test_guest_collection_is_read_only(api, notifier):
    storage = MemoryStorage({COLLECTION_KEY: json.dumps([{"id": 9, "name": "Cached"}])})
    store = CollectionStore.for_session(None, api=api, storage=storage, notifier=notifier)

    store.load()

    assert not store.is_authenticated
    assert store.contains(9)
    assert not store.add(full_game(10, "New"))
    store.remove(9)
    assert store.contains(9)
    assert api.calls == []
    assert ("error", "Please sign in to add games to your collection") in notifier.messages
    assert ("error", "Please sign in to remove games from your collection") in notifier.messages


def test_corrupt_local_storage_loads_empty(api):
    storage = MemoryStorage({COLLECTION_KEY: "{not json"})
    store = CollectionStore.for_session(None, api=api, storage=storage)

    assert store.load() == []


def test_subscribers_receive_updates_until_unsubscribed(store):
    seen = []
    unsubscribe = store.subscribe(lambda items: seen.append([game["id"] for game in items]))

    store.add(full_game(1, "One"))
    unsubscribe()
    store.add(full_game(2, "Two"))

    assert seen == [[1]]


def test_sort_by_release_date_puts_missing_dates_last(store):
    store.add(full_game(1, "Old", first_release_date=1_514_764_800))
    store.add(full_game(2, "Undated", first_release_date=None))
    store.add(full_game(3, "New", first_release_date=1_577_836_800))

    ordered = store.sorted_view("releaseDate")

    assert [game["id"] for game in ordered] == [3, 1, 2]
    assert [game["id"] for game in store.items] == [1, 2, 3]


def test_sort_by_name_and_date_added(api, notifier):
    ticks = iter([100, 300, 200])
    store = CollectionStore.for_session(
        Session("alice", "token-alice"),
        api=api,
        storage=MemoryStorage(),
        notifier=notifier,
        clock_ms=lambda: next(ticks),
    )
    store.add(full_game(1, "zelda"))
    store.add(full_game(2, "Animal Crossing"))
    store.add(full_game(3, "Bayonetta"))

    assert [game["name"] for game in store.sorted_view("name")] == [
        "Animal Crossing",
        "Bayonetta",
        "zelda",
    ]
    assert [game["id"] for game in store.sorted_view("dateAdded")] == [2, 3, 1]


def test_unknown_sort_criterion_raises(store):
    with pytest.raises(ValueError):
        store.sorted_view("rating")


def test_remote_state_is_mirrored_to_local_storage(api, notifier):
    storage = MemoryStorage()
    store = CollectionStore.for_session(
        Session("alice", "token-alice"), api=api, storage=storage, notifier=notifier
    )

    store.add(full_game(5, "Celeste"))

    saved = json.loads(storage.get_item(COLLECTION_KEY))
    assert [game["id"] for game in saved] == [5]

    guest = CollectionStore.for_session(None, api=api, storage=storage)
    guest.load()
    assert guest.contains(5)


def test_add_without_valid_id_reports_failure(store, api, notifier):
    assert not store.add({"name": "No id", "rating": 80, "platforms": [], "screenshots": []})
    assert not store.add(full_game("abc", "Bad id"))

    assert store.size() == 0
    assert api.calls == []
    assert notifier.messages == [
        ("error", "Failed to add game to collection"),
        ("error", "Failed to add game to collection"),
    ]


def test_string_id_is_stored_as_integer(store, api, notifier):
    assert store.add(full_game("42", "Hades"))

    assert store.contains(42)
    assert store.items[0]["id"] == 42
    assert api.calls == [("add", "token-alice", 42)]

    assert not store.add(full_game(42, "Hades"))
    assert ("error", "Hades is already in your collection") in notifier.messages
    assert len(api.calls) == 1
