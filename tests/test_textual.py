"""Tests for tivity.textual — Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from tivity import create
from tivity import textual as ttx


class _MockApp:
    """Just enough of textual.App for bind() and pause()."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


def make_counter():
    return create({
        "count": 1,
        "title": "nothing",
        "inc": lambda state: {"count": state.count + 1},
    })


class TestBind:
    def test_renders_immediately(self):
        app = _MockApp()
        counter = make_counter()
        rendered = []
        ttx.bind(app, counter(), lambda s: rendered.append(s.count))
        assert rendered == [1]

    def test_rerenders_on_tracked_change(self):
        app = _MockApp()
        counter = make_counter()
        rendered = []
        ttx.bind(app, counter(), lambda s: rendered.append(s.count))
        counter.get_snapshot()["inc"]()
        counter.state.title = "untracked"
        assert rendered == [1, 2]

    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        counter = make_counter()
        rendered = []
        ttx.bind(app, counter(), lambda s: rendered.append(s.count))
        counter.get_snapshot()["inc"]()
        assert rendered == [1]

    def test_skips_during_pause(self):
        app = _MockApp()
        counter = make_counter()
        rendered = []
        ttx.bind(app, counter(), lambda s: rendered.append(s.count))
        with ttx.pause(app):
            counter.get_snapshot()["inc"]()
        assert rendered == [1]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        counter = make_counter()
        calls = []

        def _render(state):
            calls.append(state.count)
            if len(calls) > 1:
                raise NoMatches("StatusFooter")

        ttx.bind(app, counter(), _render)
        counter.get_snapshot()["inc"]()
        assert calls == [1, 2]

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate to whoever committed."""
        app = _MockApp()
        counter = make_counter()

        def _render(state):
            if state.count > 1:
                raise ValueError("boom")

        ttx.bind(app, counter(), _render)
        with pytest.raises(ValueError, match="boom"):
            counter.get_snapshot()["inc"]()

    def test_unbind_stops_rendering(self):
        app = _MockApp()
        counter = make_counter()
        rendered = []
        unbind = ttx.bind(app, counter(), lambda s: rendered.append(s.count))
        unbind()
        counter.get_snapshot()["inc"]()
        assert rendered == [1]

    def test_rebinding_does_not_pile_up_subscribers(self):
        app = _MockApp()
        counter = make_counter()
        for _ in range(10):
            ttx.bind(app, counter(), lambda s: s.count)()
        assert len(counter.store._subscribers) == 0

    def test_selector_observer(self):
        app = _MockApp()
        counter = make_counter()
        rendered = []
        ttx.bind(app, counter("title"), rendered.append)
        counter.get_snapshot()["inc"]()
        counter.state.title = "something"
        assert rendered == ["nothing", "something"]

    def test_thread_marshal(self):
        """Commits from a background thread use call_from_thread."""
        app = _MockApp()
        counter = make_counter()
        rendered = []
        ttx.bind(app, counter(), lambda s: rendered.append(s.count))

        t = threading.Thread(target=counter.get_snapshot()["inc"])
        t.start()
        t.join()

        assert rendered == [1, 2]
        assert len(app._call_from_thread_log) == 1


class TestPause:
    def test_nested_blocks_resume_at_outermost_exit(self):
        app = _MockApp()
        with ttx.pause(app):
            with ttx.pause(app):
                assert not ttx.is_safe(app)
            assert not ttx.is_safe(app)
        assert ttx.is_safe(app)

    def test_error_inside_block_still_resumes(self):
        app = _MockApp()
        with pytest.raises(KeyError):
            with ttx.pause(app):
                raise KeyError("screen")
        assert ttx.is_safe(app)

    def test_scoped_to_one_app(self):
        main, other = _MockApp(), _MockApp()
        with ttx.pause(main):
            assert ttx.is_safe(other)
        assert vars(main) == {"is_running": True, "_call_from_thread_log": []}

    def test_stopped_app_is_never_safe(self):
        assert not ttx.is_safe(_MockApp(is_running=False))
