from __future__ import annotations

import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from loguru import logger

SESSION_LOGGED_OUT = 'session.logged_out'

EventHandler = Callable[..., Any]


class EventBus:
    """In-process, best-effort notifications.

    Handlers run on a small worker pool; ``emit`` never waits for them and a
    failing handler is logged without affecting the emitter or other handlers.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    def subscribe(self, event: str, handler: EventHandler) -> None:
        with self._lock:
            if handler not in self._handlers[event]:
                self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers.get(event, []):
                self._handlers[event].remove(handler)

    def emit(self, event: str, **payload: Any) -> list[Future]:
        with self._lock:
            handlers = list(self._handlers.get(event, []))
            if handlers and self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix='events'
                )
            executor = self._executor
        futures: list[Future] = []
        for handler in handlers:
            future = executor.submit(self._dispatch, event, handler, payload)
            futures.append(future)
        return futures

    @staticmethod
    def _dispatch(event: str, handler: EventHandler, payload: dict[str, Any]) -> None:
        try:
            handler(**payload)
        except Exception:
            logger.exception('event handler failed (event: {} / handler: {})', event, handler.__name__)

    @property
    def is_running(self) -> bool:
        return self._executor is not None

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=wait)


event_bus = EventBus()
