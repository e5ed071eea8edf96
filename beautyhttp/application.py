"""The event loop and worker pool that servers, clients and timers run on."""

from __future__ import annotations

import asyncio
import ssl
import tempfile
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

__all__ = [
    "Application",
    "Certificates",
    "start",
    "is_started",
    "run",
    "wait",
    "stop",
    "post",
]

DEFAULT_THREAD_NAME_PREFIX = "beauty:wkr_"


@dataclass
class Certificates:
    """PEM material for a TLS server."""

    certificate_chain: str = ""
    private_key: str = ""
    temporary_dh: str = ""
    password: str = ""

    def is_valid(self) -> bool:
        return bool(self.certificate_chain)


class _State(Enum):
    WAITING = "waiting"
    STARTED = "started"
    STOPPED = "stopped"


def _load_server_certificates(certificates: Certificates) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    with tempfile.TemporaryDirectory() as directory:
        chain = Path(directory, "chain.pem")
        chain.write_text(certificates.certificate_chain)
        key = Path(directory, "key.pem")
        key.write_text(certificates.private_key)
        context.load_cert_chain(chain, key, password=certificates.password or None)
        if certificates.temporary_dh:
            dh_params = Path(directory, "dh.pem")
            dh_params.write_text(certificates.temporary_dh)
            context.load_dh_params(str(dh_params))
    return context


class Application:
    """An asyncio event loop plus a pool of worker threads for handlers.

    ``start`` runs the loop in a background thread and is not blocking;
    ``run`` runs it in the calling thread. An event loop given by the caller
    is never run in the background: the caller drives it.
    """

    _instance: ClassVar[Application | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        certificates: Certificates | None = None,
    ) -> None:
        self._owns_loop = loop is None
        self._loop = loop if loop is not None else asyncio.new_event_loop()
        self._certificates = certificates
        self._ssl_context: ssl.SSLContext | None = None
        self._state = _State.WAITING
        self._lock = threading.RLock()
        self._loop_thread: threading.Thread | None = None
        self._running_inline = False
        self._executor: ThreadPoolExecutor | None = None
        self._concurrency = 1
        self._stopped = threading.Event()
        self._cancellables: list[Any] = []
        self.thread_name_prefix = DEFAULT_THREAD_NAME_PREFIX
        # Started timers, kept so that a reset can cancel them.
        self.timers: list[Any] = []

    # -- properties ---------------------------------------------------------

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def is_loop_owner(self) -> bool:
        return self._owns_loop

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def executor(self) -> ThreadPoolExecutor:
        """The worker pool for blocking handlers, created on first use."""
        with self._lock:
            if self._executor is None:
                self._executor = self._new_executor(self._concurrency)
            return self._executor

    @property
    def ssl_context(self) -> ssl.SSLContext | None:
        if self._certificates is None:
            return None
        with self._lock:
            if self._ssl_context is None:
                self._ssl_context = _load_server_certificates(self._certificates)
            return self._ssl_context

    def is_ssl_activated(self) -> bool:
        return self._certificates is not None

    def is_started(self) -> bool:
        return self._state is _State.STARTED

    def is_stopped(self) -> bool:
        return self._state is _State.STOPPED

    # -- lifecycle ----------------------------------------------------------

    def _new_executor(self, concurrency: int) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix=self.thread_name_prefix
        )

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def start(self, concurrency: int = 1) -> None:
        """Start the event loop in the background with ``concurrency`` workers."""
        with self._lock:
            if self._state is _State.STARTED:
                return
            self._concurrency = max(1, int(concurrency))
            if self._executor is None:
                self._executor = self._new_executor(self._concurrency)
            self._stopped.clear()
            self._state = _State.STARTED
            if self._owns_loop and self._loop_thread is None and not self._loop.is_running():
                thread = threading.Thread(
                    target=self._run_loop,
                    name=f"{self.thread_name_prefix}loop",
                    daemon=True,
                )
                self._loop_thread = thread
                thread.start()

    def stop(self, reset: bool = True) -> None:
        """Stop the event loop; with ``reset`` also cancel timers and signal sets."""
        with self._lock:
            self._state = _State.STOPPED
            timers: list[Any] = []
            cancellables: list[Any] = []
            if reset:
                timers, self.timers = self.timers, []
                cancellables, self._cancellables = self._cancellables, []
            thread, self._loop_thread = self._loop_thread, None
            executor, self._executor = self._executor, None
            must_stop_loop = (
                thread is not None or self._running_inline or self._loop.is_running()
            )
        for timer in timers:
            timer.stop()
        for cancellable in cancellables:
            cancellable.cancel()
        if must_stop_loop:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if executor is not None:
            executor.shutdown(wait=False)
        self._stopped.set()

    def run(self) -> None:
        """Run the event loop in the calling thread until ``stop`` is called."""
        with self._lock:
            background = self._loop_thread is not None
            if not background:
                if self._executor is None:
                    self._executor = self._new_executor(self._concurrency)
                self._stopped.clear()
                self._state = _State.STARTED
                self._running_inline = True
        if background:
            self.wait()
            return
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            with self._lock:
                self._running_inline = False
                self._state = _State.STOPPED
            self._stopped.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the application is stopped; False if ``timeout`` ran out."""
        return self._stopped.wait(timeout)

    def post(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` on the event loop thread."""
        self._loop.call_soon_threadsafe(callback)

    def _track(self, cancellable: Any) -> None:
        """Remember an object whose ``cancel`` is called on a reset stop."""
        with self._lock:
            if not any(item is cancellable for item in self._cancellables):
                self._cancellables.append(cancellable)

    @classmethod
    def instance(cls) -> Application:
        """The process-wide application, created on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance


def start(concurrency: int = 1) -> None:
    Application.instance().start(concurrency)


def is_started() -> bool:
    return Application.instance().is_started()


def run() -> None:
    Application.instance().run()


def wait() -> None:
    Application.instance().wait()


def stop() -> None:
    Application.instance().stop()


def post(callback: Callable[[], Any]) -> None:
    Application.instance().post(callback)