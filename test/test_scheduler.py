from __future__ import annotations

import pytest

from internal.orchestrator import (
    RunStateError,
    TicketNotFound,
    has_unmet_dependencies,
    next_buildable_ticket,
    reset_ticket_for_retry,
    unresolved_tickets,
)

from helpers import make_ticket


def test_picks_lowest_order_backlog_ticket() -> None:
    tickets = [make_ticket("c", order=3), make_ticket("a", order=1), make_ticket("b", order=2)]
    assert next_buildable_ticket(tickets).id == "a"


def test_equal_order_keeps_input_order() -> None:
    tickets = [make_ticket("x", order=1), make_ticket("y", order=1)]
    assert next_buildable_ticket(tickets).id == "x"


def test_skips_tickets_with_unmet_dependencies() -> None:
    tickets = [make_ticket("a", order=1, deps=["b"]), make_ticket("b", order=2)]
    assert next_buildable_ticket(tickets).id == "b"

    tickets[1].status = "done"
    assert next_buildable_ticket(tickets).id == "a"


def test_ignores_non_backlog_tickets() -> None:
    tickets = [make_ticket("a", status="done"), make_ticket("b", status="failed"), make_ticket("c", status="generating")]
    assert next_buildable_ticket(tickets) is None


def test_unknown_dependency_ids_are_ignored() -> None:
    ticket = make_ticket("a", deps=["outside"])
    assert not has_unmet_dependencies(ticket, [ticket])
    assert next_buildable_ticket([ticket]).id == "a"


def test_failed_dependency_blocks_dependents() -> None:
    tickets = [make_ticket("a", status="failed"), make_ticket("b", order=1, deps=["a"])]
    assert next_buildable_ticket(tickets) is None
    assert [t.id for t in unresolved_tickets(tickets)] == ["b"]


def test_single_ticket_mode() -> None:
    tickets = [make_ticket("a", order=1), make_ticket("b", order=2)]
    assert next_buildable_ticket(tickets, "b").id == "b"
    assert next_buildable_ticket(tickets, "missing") is None

    tickets[1].status = "done"
    assert next_buildable_ticket(tickets, "b") is None


def test_single_ticket_mode_respects_dependencies() -> None:
    tickets = [make_ticket("a"), make_ticket("b", deps=["a"])]
    assert next_buildable_ticket(tickets, "b") is None


def test_reset_ticket_for_retry() -> None:
    failed = make_ticket("a", status="failed")
    failed.error = "boom"
    failed.progress = 95
    failed.started_at = 1
    tickets = [failed, make_ticket("b", status="done")]

    out = reset_ticket_for_retry(tickets, "a")

    assert out[0].status == "backlog"
    assert out[0].retry_count == 1
    assert out[0].error is None
    assert out[0].progress == 0
    assert out[0].started_at is None
    assert out[1].status == "done"
    assert tickets[0].status == "failed"


def test_reset_ticket_for_retry_rejects() -> None:
    tickets = [make_ticket("a", status="done")]
    with pytest.raises(RunStateError):
        reset_ticket_for_retry(tickets, "a")
    with pytest.raises(TicketNotFound):
        reset_ticket_for_retry(tickets, "zzz")
