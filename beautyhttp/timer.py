"""One-shot and repeating timers that fire on the application's event loop."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import timedelta
from functools import partial
from typing import Any

from beautyhttp.application import Application

__all__ = ["Timer", "after", "repeat"]

Delay = float | int | timedelta


def _to_seconds(delay: Delay) -> float:
    seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
    return max(0.0, seconds)


class Timer:
    """Call ``callback`` after ``delay``.

    A callback that returns a bool decides itself whether the timer fires
    again; any other callback fires again only when ``repeat`` is true.
    """

    def __init__(
        self,
        delay: Delay,
        callback: Callable[[], Any],
        repeat: bool = False,
        app: Application | None = None,
    ) -> None:
        self._app = app if app is not None else Application.instance()
        self._delay = _to_seconds(delay)
        self._callback = callback
        self._repeat = repeat
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def delay(self) -> float:
        return self._delay

    def start(self) -> None:
        """Arm the timer, starting the application if it is not running."""
        self._check_application()
        self._register_timer()
        with self._lock:
            self._generation += 1
            generation = self._generation
        deadline = self._app.loop.time() + self._delay
        self._app.post(partial(self._arm, generation, deadline))

    def stop(self) -> None:
        with self._lock:
            self._generation += 1

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _check_application(self) -> None:
        if not self._app.is_started():
            self._app.start()

    def _register_timer(self) -> None:
        if not any(timer is self for timer in self._app.timers):
            self._app.timers.append(self)

    def _arm(self, generation: int, deadline: float) -> None:
        if self._is_current(generation):
            self._app.loop.call_at(deadline, self._fire, generation, deadline)

    def _fire(self, generation: int, deadline: float) -> None:
        if not self._is_current(generation):
            return
        result = self._callback()
        again = result if isinstance(result, bool) else self._repeat
        if again:
            self._arm(generation, deadline + self._delay)

    def __repr__(self) -> str:
        return f"Timer(delay={self._delay!r}, repeat={self._repeat!r})"


def after(delay: Delay, callback: Callable[[], Any], repeat: bool = False) -> Timer:
    """Start and return a timer that calls ``callback`` after ``delay``."""
    timer = Timer(delay, callback, repeat=repeat)
    timer.start()
    return timer


def repeat(delay: Delay, callback: Callable[[], Any]) -> Timer:
    """Start and return a timer that calls ``callback`` every ``delay``."""
    return after(delay, callback, repeat=True)