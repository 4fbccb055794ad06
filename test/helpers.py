from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional

from internal.clients import ApplyResult, ReviewIssue, ReviewResult
from internal.orchestrator import BuildRunInput, BuildRunManager, Ticket

BASE_URL = "http://collab.test"


def make_ticket(ticket_id: str, order: int = 0, deps: Optional[List[str]] = None, status: str = "backlog") -> Ticket:
    return Ticket(
        id=ticket_id,
        title=f"Ticket {ticket_id}",
        description=f"Build {ticket_id}",
        order=order,
        dependencies=list(deps or []),
        status=status,
    )


def make_input(tickets: List[Ticket], plan: Optional[dict] = None, only: Optional[str] = None) -> BuildRunInput:
    return BuildRunInput(
        tickets=tickets,
        sandbox_id="sbx_test",
        model="test-model",
        plan=plan if plan is not None else {"id": "plan-1"},
        only_ticket_id=only,
    )


class FakeGenerator:
    """Emits one file block per ticket, streamed in small chunks."""

    def __init__(self, fail_titles: Optional[Dict[str, Exception]] = None, chunk_size: int = 7) -> None:
        self.fail_titles = dict(fail_titles or {})
        self.chunk_size = chunk_size
        self.prompts: List[str] = []
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()

    def generate(self, base_url: str, model: str, prompt: str, sandbox_id: str, on_chunk=None) -> str:
        self.prompts.append(prompt)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        for title, err in list(self.fail_titles.items()):
            if f"- Title: {title}\n" in prompt:
                raise err
        n = len(self.prompts)
        code = f'<file path="src/file{n}.tsx">export const value = {n};</file>'
        if on_chunk:
            for i in range(0, len(code), self.chunk_size):
                on_chunk(code[i : i + self.chunk_size])
        return code


class FakeApplier:
    def __init__(self) -> None:
        self.calls: List[str] = []

    def apply(self, base_url: str, sandbox_id: str, code: str, is_edit: bool = True) -> ApplyResult:
        self.calls.append(code)
        return ApplyResult(applied_files=[f"src/file{len(self.calls)}.tsx"], duration_ms=3)


class FakeReviewer:
    def __init__(self, issues: Optional[List[ReviewIssue]] = None) -> None:
        self.issues = list(issues or [])
        self.calls: List[tuple] = []

    def review(self, base_url: str, ticket_id: str, ticket_title: str, files) -> ReviewResult:
        self.calls.append((ticket_id, [f.path for f in files]))
        return ReviewResult(issues=list(self.issues))


def make_manager(generator=None, applier=None, reviewer=None, validator=None) -> BuildRunManager:
    kwargs = {}
    if validator is not None:
        kwargs["validator"] = validator
    return BuildRunManager(
        generator=generator or FakeGenerator(),
        applier=applier or FakeApplier(),
        reviewer=reviewer or FakeReviewer(),
        **kwargs,
    )


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
