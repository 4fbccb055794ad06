from __future__ import annotations

import copy
import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from internal.clients import ApplyClient, CodeGenerationClient, ReviewClient, validate_blueprint
from internal.streaming import StreamingFileParser, extract_file_blocks
from internal.util.cancel import CancelToken
from internal.util.clock import now_ms
from internal.util.id import new_run_id

from .errors import BlueprintRejected, ReviewRejected, RunNotFound, RunStateError
from .events import EventBus, Handler
from .models import TERMINAL_RUN_STATUSES, BuildEvent, BuildRun, BuildRunInput, Ticket
from .prompts import build_ticket_prompt
from .scheduler import next_buildable_ticket, reset_ticket_for_retry, unresolved_tickets

logger = logging.getLogger(__name__)


@dataclass
class _RunControl:
    resumed: threading.Condition
    token: CancelToken
    thread: Optional[threading.Thread] = None


class BuildRunManager:
    """Owns every build run in the process and drives each on its own thread."""

    def __init__(
        self,
        generator: Any = None,
        applier: Any = None,
        reviewer: Any = None,
        validator: Callable[[Any], Any] = validate_blueprint,
        bus: EventBus | None = None,
        http_timeout_s: float = 300.0,
    ) -> None:
        self._generator = generator or CodeGenerationClient(timeout_s=http_timeout_s)
        self._applier = applier or ApplyClient(timeout_s=http_timeout_s)
        self._reviewer = reviewer or ReviewClient(timeout_s=http_timeout_s)
        self._validator = validator
        self._bus = bus or EventBus()
        self._runs: Dict[str, BuildRun] = {}
        self._controls: Dict[str, _RunControl] = {}
        self._lock = threading.RLock()

    # records

    def create_run(self, run_input: BuildRunInput, base_url: str | None = None) -> BuildRun:
        ts = now_ms()
        run = BuildRun(
            run_id=new_run_id(),
            created_at=ts,
            updated_at=ts,
            status="queued",
            input=copy.deepcopy(run_input),
            tickets=copy.deepcopy(run_input.tickets),
            base_url=base_url,
        )
        with self._lock:
            self._runs[run.run_id] = run
            self._controls[run.run_id] = _RunControl(threading.Condition(self._lock), CancelToken())
            snapshot = copy.deepcopy(run)
        logger.info("created run %s (%d tickets, sandbox %s)", run.run_id, len(run.tickets), run_input.sandbox_id)
        return snapshot

    def get_run(self, run_id: str) -> BuildRun:
        with self._lock:
            return copy.deepcopy(self._require(run_id))

    def list_runs(self) -> List[BuildRun]:
        with self._lock:
            runs = [copy.deepcopy(r) for r in self._runs.values()]
        runs.sort(key=lambda r: r.created_at, reverse=True)
        return runs

    def list_events(self, run_id: str) -> List[BuildEvent]:
        with self._lock:
            return list(self._require(run_id).events)

    def subscribe(self, run_id: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._require(run_id)
            return self._bus.subscribe(run_id, handler)

    def subscribe_with_history(self, run_id: str, handler: Handler) -> Tuple[List[BuildEvent], Callable[[], None]]:
        """Snapshot the log and subscribe atomically, so no event is missed or repeated."""
        with self._lock:
            run = self._require(run_id)
            history = list(run.events)
            return history, self._bus.subscribe(run_id, handler)

    # control

    def start(self, run_id: str) -> bool:
        with self._lock:
            run = self._require(run_id)
            control = self._controls[run_id]
            if control.thread is not None:
                return False
            if run.status in TERMINAL_RUN_STATUSES:
                raise RunStateError(f"run {run_id} is {run.status}")
            thread = threading.Thread(target=self._execute, args=(run_id,), name=f"build-{run_id}", daemon=True)
            control.thread = thread
        thread.start()
        return True

    def wait(self, run_id: str, timeout: float | None = None) -> bool:
        with self._lock:
            self._require(run_id)
            thread = self._controls[run_id].thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def pause(self, run_id: str) -> None:
        with self._lock:
            run = self._require_active(run_id)
            if run.paused:
                return
            run.paused = True
            self._set_status(run, "paused", "Paused")
        logger.info("paused run %s", run_id)

    def resume(self, run_id: str) -> None:
        with self._lock:
            run = self._require_active(run_id)
            if not run.paused:
                return
            control = self._controls[run_id]
            run.paused = False
            self._set_status(run, "running" if control.thread is not None else "queued", "Resumed")
            control.resumed.notify_all()
        logger.info("resumed run %s", run_id)

    def cancel(self, run_id: str, reason: str = "cancelled by user") -> None:
        with self._lock:
            run = self._require_active(run_id)
            control = self._controls[run_id]
            if not control.token.cancel(reason):
                return
            if control.thread is None:
                self._finish_cancelled(run)
            else:
                self._log(run, "warn", f"Cancellation requested ({control.token.reason}); stopping before the next ticket")
                control.resumed.notify_all()
        logger.info("cancel requested for run %s", run_id)

    def retry_ticket(self, run_id: str, ticket_id: str) -> BuildRun:
        with self._lock:
            run = self._require(run_id)
            if run.status not in TERMINAL_RUN_STATUSES:
                raise RunStateError(f"run {run_id} is still {run.status}")
            tickets = reset_ticket_for_retry(run.tickets, ticket_id)
            retry_input = dataclasses.replace(run.input, tickets=tickets)
            base_url = run.base_url
        retried = self.create_run(retry_input, base_url)
        logger.info("run %s retries ticket %s of run %s", retried.run_id, ticket_id, run_id)
        return retried

    # run loop

    def _execute(self, run_id: str) -> None:
        with self._lock:
            run = self._runs[run_id]
            control = self._controls[run_id]
            if run.status in TERMINAL_RUN_STATUSES:
                return
            only = run.input.only_ticket_id
            run.status = "paused" if run.paused else "running"
            self._emit(
                run,
                "run_started",
                status=run.status,
                plan_id=run.input.plan_id,
                sandbox_id=run.input.sandbox_id,
                mode="single_ticket" if only else "full",
            )
        logger.info("run %s started", run_id)

        try:
            while True:
                if not self._wait_if_paused(run, control):
                    break
                with self._lock:
                    ticket = next_buildable_ticket(run.tickets, only)
                    if ticket is None:
                        break
                    run.current_ticket_id = ticket.id
                    self._update_ticket(run, ticket.id, "generating", 5)
                self._execute_ticket(run, ticket.id)
                if only:
                    break
        except Exception as err:
            self._fail_run(run, err)
            return

        with self._lock:
            # single-ticket runs leave the loop without re-checking the token
            if control.token.is_cancelled():
                self._finish_cancelled(run)
                return
            if not only:
                stalled = unresolved_tickets(run.tickets)
                if stalled:
                    ids = ", ".join(t.id for t in stalled)
                    self._log(run, "warn", f"No buildable ticket left; unresolved: {ids}")
                    logger.warning("run %s finished with unresolved tickets: %s", run_id, ids)
            self._set_status(run, "completed", "Build complete")
            self._emit(run, "run_completed", status="completed")
        logger.info("run %s completed", run_id)

    def _wait_if_paused(self, run: BuildRun, control: _RunControl) -> bool:
        with self._lock:
            while run.paused and not control.token.is_cancelled():
                control.resumed.wait()
            return not control.token.is_cancelled()

    def _execute_ticket(self, run: BuildRun, ticket_id: str) -> None:
        with self._lock:
            found = run.find_ticket(ticket_id)
            ticket = copy.deepcopy(found) if found else None
            base_url = run.base_url
            run_input = run.input
        if ticket is None:
            raise RuntimeError(f"Ticket not found: {ticket_id}")
        if not base_url:
            raise RuntimeError("Missing base_url for build run (cannot call collaborator endpoints)")

        prompt = build_ticket_prompt(ticket, run_input.template_target, run_input.blueprint, run_input.ui_style)

        # generate
        self._log(run, "system", f"Generating: {ticket.title}", ticket_id)
        parser = StreamingFileParser()

        def on_chunk(text: str) -> None:
            for event in parser.feed(text):
                if event.type == "file_completed":
                    self._log(run, "info", f"Generated {event.path}", ticket_id)

        gen_start = time.monotonic()
        code = self._generator.generate(base_url, run_input.model, prompt, run_input.sandbox_id, on_chunk=on_chunk)
        gen_ms = _elapsed_ms(gen_start)
        for event in parser.update(code):
            if event.type == "file_completed":
                self._log(run, "info", f"Generated {event.path}", ticket_id)
        dangling = parser.finish()
        if dangling:
            self._log(run, "warn", f"Generation ended inside an unterminated file block: {dangling}", ticket_id)

        with self._lock:
            self._patch_ticket(run, ticket_id, generated_code=code)
            self._emit(run, "ticket_artifacts", ticket_id=ticket_id, generated_code=code)

        # apply
        with self._lock:
            self._update_ticket(run, ticket_id, "applying", 90)
            self._log(run, "system", f"Applying: {ticket.title}", ticket_id)
        applied = self._applier.apply(base_url, run_input.sandbox_id, code, True)
        with self._lock:
            self._patch_ticket(run, ticket_id, actual_files=list(applied.applied_files), preview_available=True)
            self._emit(
                run,
                "ticket_artifacts",
                ticket_id=ticket_id,
                applied_files=tuple(applied.applied_files),
                apply_duration_ms=applied.duration_ms,
            )

        # review gate
        with self._lock:
            self._update_ticket(run, ticket_id, "pr_review", 95)
            self._log(run, "system", f"PR review: {ticket.title}", ticket_id)
        review_start = time.monotonic()
        review = self._reviewer.review(base_url, ticket_id, ticket.title, extract_file_blocks(code))
        with self._lock:
            self._emit(
                run,
                "ticket_artifacts",
                ticket_id=ticket_id,
                review_duration_ms=_elapsed_ms(review_start),
                review_issues_count=len(review.issues),
            )
        if review.blocking:
            raise ReviewRejected(review.error_count(), len(review.issues))

        # blueprint gate
        with self._lock:
            self._update_ticket(run, ticket_id, "testing", 98)
        validate_start = time.monotonic()
        blueprint = run_input.blueprint
        if blueprint:
            result = self._validator(blueprint)
            if not result.ok:
                raise BlueprintRejected(result.errors)
        with self._lock:
            self._emit(run, "ticket_artifacts", ticket_id=ticket_id, validation_duration_ms=_elapsed_ms(validate_start))

        with self._lock:
            self._update_ticket(run, ticket_id, "done", 100)
            self._log(run, "system", f"Done: {ticket.title} (gen {gen_ms / 1000:.1f}s)", ticket_id)

    # state helpers; callers hold self._lock

    def _require(self, run_id: str) -> BuildRun:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run

    def _require_active(self, run_id: str) -> BuildRun:
        run = self._require(run_id)
        if run.status in TERMINAL_RUN_STATUSES:
            raise RunStateError(f"run {run_id} is {run.status}")
        return run

    def _emit(self, run: BuildRun, event_type: str, **fields: Any) -> None:
        ts = now_ms()
        run.updated_at = ts
        self._bus.emit(run.events, BuildEvent(type=event_type, run_id=run.run_id, at=ts, **fields))

    def _log(self, run: BuildRun, level: str, message: str, ticket_id: str | None = None) -> None:
        with self._lock:
            self._emit(run, "log", level=level, message=message, ticket_id=ticket_id)

    def _set_status(self, run: BuildRun, status: str, message: str | None = None, error: str | None = None) -> None:
        run.status = status
        run.error = error
        self._emit(run, "run_status", status=status, message=message, error=error)

    def _patch_ticket(self, run: BuildRun, ticket_id: str, **changes: Any) -> Optional[Ticket]:
        ticket = run.find_ticket(ticket_id)
        if ticket is None:
            return None
        for key, value in changes.items():
            setattr(ticket, key, value)
        return ticket

    def _update_ticket(
        self,
        run: BuildRun,
        ticket_id: str,
        status: str,
        progress: int | None = None,
        error: str | None = None,
    ) -> None:
        changes: Dict[str, Any] = {"status": status}
        if progress is not None:
            changes["progress"] = progress
        if error:
            changes["error"] = error
        if status == "generating":
            changes["started_at"] = now_ms()
        if status == "done":
            changes["completed_at"] = now_ms()
            changes["progress"] = 100
        self._patch_ticket(run, ticket_id, **changes)
        self._emit(run, "ticket_status", ticket_id=ticket_id, status=status, progress=progress, error=error)

    def _fail_run(self, run: BuildRun, err: Exception) -> None:
        message = str(err) or "Build failed"
        with self._lock:
            if run.current_ticket_id:
                self._update_ticket(run, run.current_ticket_id, "failed", error=message)
            self._set_status(run, "failed", message, message)
        logger.warning("run %s failed: %s", run.run_id, message)

    def _finish_cancelled(self, run: BuildRun) -> None:
        run.paused = False
        self._set_status(run, "cancelled", "Cancelled")
        self._emit(run, "run_completed", status="cancelled")
        logger.info("run %s cancelled", run.run_id)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
