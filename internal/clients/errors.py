from __future__ import annotations


class CollaboratorError(RuntimeError):
    """A generation, apply or review endpoint failed or misbehaved."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
