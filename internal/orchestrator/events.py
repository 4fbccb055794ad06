from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List

from .models import BuildEvent

logger = logging.getLogger(__name__)

Handler = Callable[[BuildEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}
        self._lock = threading.RLock()

    def subscribe(self, run_id: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(run_id, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(run_id)
                if not handlers:
                    return
                try:
                    handlers.remove(handler)
                except ValueError:
                    return
                if not handlers:
                    del self._handlers[run_id]

        return unsubscribe

    def subscriber_count(self, run_id: str) -> int:
        with self._lock:
            return len(self._handlers.get(run_id, ()))

    def emit(self, log: List[BuildEvent], event: BuildEvent) -> None:
        with self._lock:
            log.append(event)
            handlers = list(self._handlers.get(event.run_id, ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("event handler failed for run %s (%s)", event.run_id, event.type)
