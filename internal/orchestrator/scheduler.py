from __future__ import annotations

import copy
from typing import Dict, List, Optional, Sequence

from .errors import RunStateError, TicketNotFound
from .models import TERMINAL_TICKET_STATUSES, Ticket

RETRYABLE_STATUSES = ("failed", "skipped")


def has_unmet_dependencies(ticket: Ticket, tickets: Sequence[Ticket]) -> bool:
    """True when a dependency names a ticket in this run that is not done.

    Ids that match no ticket refer to work outside the run and are ignored.
    """
    by_id: Dict[str, Ticket] = {t.id: t for t in tickets}
    for dep_id in ticket.dependencies:
        dep = by_id.get(dep_id)
        if dep is not None and dep.status != "done":
            return True
    return False


def next_buildable_ticket(tickets: Sequence[Ticket], only_ticket_id: str | None = None) -> Optional[Ticket]:
    if only_ticket_id:
        target = next((t for t in tickets if t.id == only_ticket_id), None)
        if target is None or target.status != "backlog":
            return None
        if has_unmet_dependencies(target, tickets):
            return None
        return target

    # sorted() is stable, so equal orders keep input order
    for ticket in sorted(tickets, key=lambda t: t.order):
        if ticket.status != "backlog":
            continue
        if has_unmet_dependencies(ticket, tickets):
            continue
        return ticket
    return None


def unresolved_tickets(tickets: Sequence[Ticket]) -> List[Ticket]:
    return [t for t in tickets if t.status not in TERMINAL_TICKET_STATUSES]


def reset_ticket_for_retry(tickets: Sequence[Ticket], ticket_id: str) -> List[Ticket]:
    out = [copy.deepcopy(t) for t in tickets]
    target = next((t for t in out if t.id == ticket_id), None)
    if target is None:
        raise TicketNotFound(ticket_id)
    if target.status not in RETRYABLE_STATUSES:
        raise RunStateError(f"ticket {ticket_id} is {target.status}; only failed or skipped tickets can be retried")
    target.status = "backlog"
    target.retry_count += 1
    target.progress = 0
    target.error = None
    target.started_at = None
    target.completed_at = None
    return out
