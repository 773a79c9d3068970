from routes.api_utils import DETAIL_CACHE_CONTROL


def test_game_details_include_similar_games(client):
    response = client.get("/api/games/1020")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["game"]["name"] == "Chrono Trigger"
    assert payload["game"]["developer"] == "Studio Dev"
    assert [game["id"] for game in payload["similarGames"]] == [1021, 1022]
    assert response.headers["Cache-Control"] == DETAIL_CACHE_CONTROL


def test_non_numeric_id_is_rejected_without_upstream_call(client, opener):
    response = client.get("/api/games/abc")

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid game ID"}
    assert opener.requests == []


def test_unknown_game_returns_404(client):
    response = client.get("/api/games/424242")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Game not found"}


def test_repeated_detail_requests_hit_igdb_once(client, opener):
    client.get("/api/games/1020")
    client.get("/api/games/1020")

    detail_bodies = [body for body in opener.bodies() if body.endswith("where id = 1020;")]
    assert len(detail_bodies) == 1


def test_catalog_crash_maps_to_500(client, catalog, monkeypatch):
    def explode(_game_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(catalog, "get_game_page", explode)

    response = client.get("/api/games/1020")

    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to get game details"}


def test_unknown_api_route_returns_json_404(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Resource not found."}
