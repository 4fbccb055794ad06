from __future__ import annotations


class RunNotFound(KeyError):
    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run not found: {run_id}")
        self.run_id = run_id

    def __str__(self) -> str:
        return self.args[0]


class TicketNotFound(KeyError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(f"Ticket not found: {ticket_id}")
        self.ticket_id = ticket_id

    def __str__(self) -> str:
        return self.args[0]


class RunStateError(RuntimeError):
    """The requested transition is not legal for the run or ticket's state."""


class GateFailure(RuntimeError):
    """A ticket was rejected by policy rather than by a transport error."""


class ReviewRejected(GateFailure):
    def __init__(self, error_count: int, issues_count: int) -> None:
        super().__init__(f"PR review failed: {error_count} error(s)")
        self.error_count = error_count
        self.issues_count = issues_count


class BlueprintRejected(GateFailure):
    def __init__(self, errors: list) -> None:
        super().__init__(f"Blueprint validation failed: {'; '.join(errors)}")
        self.errors = list(errors)
