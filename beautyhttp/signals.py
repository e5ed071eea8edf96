"""Process signal handlers whose callbacks run on the application's event loop."""

from __future__ import annotations

import signal as _signal
import threading
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from beautyhttp.application import Application

__all__ = ["SignalSet", "signal"]

SignalCallback = Callable[[int], Any]

_lock = threading.Lock()
_subscribers: dict[int, list[SignalSet]] = {}
_previous: dict[int, Any] = {}


def _dispatch(signum: int, frame: Any) -> None:
    subscribers = list(_subscribers.get(signum, ()))
    if subscribers:
        for signal_set in subscribers:
            signal_set._deliver(signum)
        return
    # Nobody listens any more: hand the signal back to its former handler.
    previous = _previous.pop(signum, _signal.SIG_DFL)
    _signal.signal(signum, previous)
    if callable(previous):
        previous(signum, frame)
    elif previous in (_signal.SIG_DFL, None):
        _signal.raise_signal(signum)


def _restore(signum: int) -> None:
    if threading.current_thread() is not threading.main_thread():
        return  # the dispatcher restores it on the next delivery
    if signum in _previous:
        _signal.signal(signum, _previous.pop(signum))


class SignalSet:
    """A set of signals that call ``callback(signum)`` on the event loop."""

    def __init__(self, callback: SignalCallback, app: Application | None = None) -> None:
        self._app = app if app is not None else Application.instance()
        self._callback = callback
        self._signals: list[int] = []
        self._active = False

    @property
    def signals(self) -> tuple[int, ...]:
        return tuple(self._signals)

    def add(self, signum: int) -> SignalSet:
        signum = int(signum)
        if signum not in self._signals:
            self._signals.append(signum)
        return self

    def run(self) -> None:
        """Install the handlers; must be called from the main thread."""
        with _lock:
            for signum in self._signals:
                listeners = _subscribers.setdefault(signum, [])
                if not listeners and signum not in _previous:
                    _previous[signum] = _signal.signal(signum, _dispatch)
                if not any(listener is self for listener in listeners):
                    listeners.append(self)
            self._active = True
        self._app._track(self)

    def cancel(self) -> None:
        """Stop listening; restore former handlers of signals nobody listens to."""
        with _lock:
            self._active = False
            for signum in self._signals:
                listeners = _subscribers.get(signum, [])
                listeners[:] = [listener for listener in listeners if listener is not self]
                if not listeners:
                    _subscribers.pop(signum, None)
                    _restore(signum)

    def _deliver(self, signum: int) -> None:
        if self._active:
            self._app.post(partial(self._callback, signum))


def signal(signals: int | Iterable[int], callback: SignalCallback) -> SignalSet:
    """Call ``callback`` with the signal number whenever one of ``signals`` arrives."""
    numbers = [signals] if isinstance(signals, int) else list(signals)
    signal_set = SignalSet(callback)
    for signum in numbers:
        signal_set.add(signum)
    signal_set.run()
    return signal_set