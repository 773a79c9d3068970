import threading

import pytest

from search.controller import SEARCH_ERROR_MESSAGE, SearchController


class FakeTimer:
    """Captures scheduled callbacks instead of sleeping."""

    created: list["FakeTimer"] = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


class FakeBackend:
    def __init__(self):
        self.searches: list[tuple[str, int]] = []
        self.popular_calls: list[int] = []
        self.fail = False

    def search(self, query, limit=10):
        self.searches.append((query, limit))
        if self.fail:
            raise RuntimeError("network down")
        return [{"id": len(self.searches), "name": query}]

    def get_popular(self, limit=10):
        self.popular_calls.append(limit)
        return [{"id": index, "name": f"Popular {index}"} for index in range(limit)]


@pytest.fixture(autouse=True)
def reset_timers():
    FakeTimer.created = []
    yield
    FakeTimer.created = []


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def controller(backend):
    return SearchController(backend, timer_factory=FakeTimer)


def test_rapid_typing_dispatches_only_last_query(controller, backend):
    for text in ("m", "ma", "mar", "mari", "mario"):
        controller.set_query(text)

    assert backend.searches == []
    assert all(timer.cancelled for timer in FakeTimer.created[:-1])
    latest = FakeTimer.created[-1]
    assert latest.interval == pytest.approx(0.3)
    assert latest.daemon is True

    latest.fire()

    assert backend.searches == [("mario", 10)]
    assert controller.state.results == [{"id": 1, "name": "mario"}]
    assert controller.state.is_loading is False


def test_blank_query_clears_immediately(controller, backend):
    controller.set_query("zelda")
    FakeTimer.created[-1].fire()

    controller.set_query("   ")

    state = controller.state
    assert state.results == []
    assert state.error is None
    assert len(FakeTimer.created) == 1
    assert backend.searches == [("zelda", 10)]


def test_superseded_response_is_discarded(backend):
    started = threading.Event()
    release = threading.Event()
    original_search = backend.search

    def slow_search(query, limit=10):
        if query == "old":
            started.set()
            release.wait(timeout=5)
        return original_search(query, limit)

    backend.search = slow_search
    controller = SearchController(backend, timer_factory=FakeTimer)

    controller.set_query("old")
    old_timer = FakeTimer.created[-1]
    worker = threading.Thread(target=old_timer.fire)
    worker.start()
    assert started.wait(timeout=5)

    controller.set_query("new")
    FakeTimer.created[-1].fire()
    release.set()
    worker.join(timeout=5)

    assert controller.state.results[0]["name"] == "new"
    assert controller.state.query == "new"


def test_flush_runs_pending_search_now(controller, backend):
    controller.set_query("metroid")

    controller.flush()

    assert backend.searches == [("metroid", 10)]
    assert FakeTimer.created[-1].cancelled
    controller.flush()
    assert len(backend.searches) == 1


def test_search_failure_sets_error_state(controller, backend):
    backend.fail = True
    controller.set_query("zelda")

    FakeTimer.created[-1].fire()

    state = controller.state
    assert state.error == SEARCH_ERROR_MESSAGE
    assert state.results == []
    assert state.is_loading is False


def test_suggestions_load_five_popular_games(controller, backend):
    suggestions = controller.load_suggestions()

    assert backend.popular_calls == [5]
    assert len(suggestions) == 5
    assert controller.state.suggestions == suggestions


def test_subscribers_see_loading_then_results(controller):
    states = []
    controller.subscribe(states.append)

    controller.set_query("kirby")
    FakeTimer.created[-1].fire()

    assert [state.is_loading for state in states] == [True, False]
    assert states[-1].results[0]["name"] == "kirby"


def test_timer_callback_racing_flush_does_not_search_twice(controller, backend):
    controller.set_query("zelda")
    timer = FakeTimer.created[-1]

    controller.flush()
    # A threading.Timer that already fired keeps running after cancel().
    timer.function(*timer.args, **timer.kwargs)

    assert backend.searches == [("zelda", 10)]
    assert controller.results == [{"id": 1, "name": "zelda"}]
