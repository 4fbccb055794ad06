from .errors import BlueprintRejected, GateFailure, ReviewRejected, RunNotFound, RunStateError, TicketNotFound
from .events import EventBus
from .manager import BuildRunManager
from .models import (
    TERMINAL_RUN_STATUSES,
    TERMINAL_TICKET_STATUSES,
    BuildEvent,
    BuildRun,
    BuildRunInput,
    Ticket,
    ticket_from_dict,
    ticket_to_dict,
)
from .prompts import build_ticket_prompt
from .scheduler import has_unmet_dependencies, next_buildable_ticket, reset_ticket_for_retry, unresolved_tickets

__all__ = [
    "BlueprintRejected",
    "GateFailure",
    "ReviewRejected",
    "RunNotFound",
    "RunStateError",
    "TicketNotFound",
    "EventBus",
    "BuildRunManager",
    "TERMINAL_RUN_STATUSES",
    "TERMINAL_TICKET_STATUSES",
    "BuildEvent",
    "BuildRun",
    "BuildRunInput",
    "Ticket",
    "ticket_from_dict",
    "ticket_to_dict",
    "build_ticket_prompt",
    "has_unmet_dependencies",
    "next_buildable_ticket",
    "reset_ticket_for_retry",
    "unresolved_tickets",
]
