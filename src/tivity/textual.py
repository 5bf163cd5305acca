"""Textual bindings for tivity observers. Only imported on request; needs textual.

bind() is the UI side of a StoreObserver: it renders once, then re-renders
whenever the observer reports that a field the render read has changed.
Guards, NoMatches handling and thread marshaling live here, not at callsites.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# id(app) -> nesting depth of active pause() blocks.
_pause_depth: dict[int, int] = {}


@contextmanager
def pause(app):
    """Hold back bound renders for app, e.g. while its screens are rebuilt.

    Blocks may nest; renders resume when the outermost one exits.
    """
    key = id(app)
    _pause_depth[key] = _pause_depth.get(key, 0) + 1
    try:
        yield
    finally:
        depth = _pause_depth.pop(key) - 1
        if depth:
            _pause_depth[key] = depth


def is_safe(app) -> bool:
    """True when a bound render may query app's widgets."""
    return bool(app.is_running) and id(app) not in _pause_depth


def bind(app, observer, render_fn):
    """Render observer() into Textual widgets and keep it current.

    The first render runs right away so the observer learns which fields
    matter. Later renders are skipped while the app is paused or not
    running, swallow NoMatches from widget queries, and are marshaled with
    call_from_thread when the commit happened off the main thread.

    Returns a function that stops re-rendering.

    Usage:
        counter = create({"count": 0, "inc": ...})
        bind(app, counter(), lambda s: app.query_one("#count").update(str(s.count)))
    """
    _main = threading.get_ident()

    def _guarded():
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe)
        else:
            _safe()

    def _safe():
        try:
            render_fn(observer())
        except NoMatches:
            pass

    _safe()
    return observer.subscribe(_guarded)
