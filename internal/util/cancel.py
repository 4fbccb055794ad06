from __future__ import annotations

import threading
from typing import Optional


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str | None = None) -> bool:
        if self._event.is_set():
            return False
        self._reason = reason or "cancelled"
        self._event.set()
        return True

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason
