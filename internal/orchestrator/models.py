from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

TicketStatus = Literal[
    "backlog",
    "generating",
    "applying",
    "pr_review",
    "testing",
    "done",
    "failed",
    "skipped",
    "awaiting_input",
]
RunStatus = Literal["queued", "running", "paused", "completed", "failed", "cancelled"]
EventType = Literal["run_started", "run_status", "ticket_status", "ticket_artifacts", "log", "run_completed"]
LogLevel = Literal["system", "info", "warn", "error"]

TERMINAL_TICKET_STATUSES = ("done", "failed", "skipped")
TERMINAL_RUN_STATUSES = ("completed", "failed", "cancelled")


@dataclass
class Ticket:
    id: str
    title: str = ""
    description: str = ""
    type: str = "feature"
    status: TicketStatus = "backlog"
    priority: str = "medium"
    complexity: str = "medium"
    order: int = 0
    dependencies: List[str] = field(default_factory=list)
    actual_files: List[str] = field(default_factory=list)
    generated_code: Optional[str] = None
    progress: int = 0
    retry_count: int = 0
    error: Optional[str] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    preview_available: bool = False
    # wire fields this service does not interpret, echoed back untouched
    extra: Dict[str, Any] = field(default_factory=dict)


_TICKET_FIELDS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "type": "type",
    "status": "status",
    "priority": "priority",
    "complexity": "complexity",
    "order": "order",
    "dependencies": "dependencies",
    "actualFiles": "actual_files",
    "generatedCode": "generated_code",
    "progress": "progress",
    "retryCount": "retry_count",
    "error": "error",
    "startedAt": "started_at",
    "completedAt": "completed_at",
    "previewAvailable": "preview_available",
}


def ticket_from_dict(data: Dict[str, Any]) -> Ticket:
    if not isinstance(data, dict):
        raise ValueError("ticket must be an object")
    ticket_id = str(data.get("id") or "").strip()
    if not ticket_id:
        raise ValueError("ticket id is required")
    return Ticket(
        id=ticket_id,
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        type=str(data.get("type") or "feature"),
        status=data.get("status") or "backlog",
        priority=str(data.get("priority") or "medium"),
        complexity=str(data.get("complexity") or "medium"),
        order=_int(data.get("order"), 0),
        dependencies=[str(d) for d in data.get("dependencies") or []],
        actual_files=[str(p) for p in data.get("actualFiles") or []],
        generated_code=data.get("generatedCode"),
        progress=_int(data.get("progress"), 0),
        retry_count=_int(data.get("retryCount"), 0),
        error=data.get("error"),
        started_at=_ms(data.get("startedAt")),
        completed_at=_ms(data.get("completedAt")),
        preview_available=bool(data.get("previewAvailable", False)),
        extra={k: v for k, v in data.items() if k not in _TICKET_FIELDS},
    )


def ticket_to_dict(ticket: Ticket) -> Dict[str, Any]:
    out: Dict[str, Any] = dict(ticket.extra)
    for wire, attr in _TICKET_FIELDS.items():
        value = getattr(ticket, attr)
        if value is None:
            continue
        out[wire] = list(value) if isinstance(value, list) else value
    return out


@dataclass
class BuildRunInput:
    tickets: List[Ticket]
    sandbox_id: str
    model: str
    plan: Optional[Dict[str, Any]] = None
    ui_style: Optional[Any] = None
    only_ticket_id: Optional[str] = None

    @property
    def blueprint(self) -> Optional[Dict[str, Any]]:
        value = (self.plan or {}).get("blueprint")
        return value if isinstance(value, dict) else None

    @property
    def template_target(self) -> str:
        target = (self.plan or {}).get("templateTarget") or (self.blueprint or {}).get("templateTarget")
        return str(target or "vite")

    @property
    def plan_id(self) -> Optional[str]:
        value = (self.plan or {}).get("id")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class BuildEvent:
    type: EventType
    run_id: str
    at: int
    status: Optional[str] = None
    ticket_id: Optional[str] = None
    progress: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None
    level: Optional[LogLevel] = None
    plan_id: Optional[str] = None
    sandbox_id: Optional[str] = None
    mode: Optional[str] = None
    generated_code: Optional[str] = None
    applied_files: Optional[Tuple[str, ...]] = None
    apply_duration_ms: Optional[int] = None
    review_duration_ms: Optional[int] = None
    review_issues_count: Optional[int] = None
    validation_duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, wire in _EVENT_FIELDS:
            value = getattr(self, attr)
            if value is None:
                continue
            out[wire] = list(value) if isinstance(value, tuple) else value
        return out


_EVENT_FIELDS = (
    ("type", "type"),
    ("run_id", "runId"),
    ("at", "at"),
    ("status", "status"),
    ("ticket_id", "ticketId"),
    ("progress", "progress"),
    ("message", "message"),
    ("error", "error"),
    ("level", "level"),
    ("plan_id", "planId"),
    ("sandbox_id", "sandboxId"),
    ("mode", "mode"),
    ("generated_code", "generatedCode"),
    ("applied_files", "appliedFiles"),
    ("apply_duration_ms", "applyDurationMs"),
    ("review_duration_ms", "reviewDurationMs"),
    ("review_issues_count", "reviewIssuesCount"),
    ("validation_duration_ms", "validationDurationMs"),
)


@dataclass
class BuildRun:
    run_id: str
    created_at: int
    updated_at: int
    status: RunStatus
    input: BuildRunInput
    tickets: List[Ticket]
    events: List[BuildEvent] = field(default_factory=list)
    paused: bool = False
    current_ticket_id: Optional[str] = None
    base_url: Optional[str] = None
    error: Optional[str] = None

    def find_ticket(self, ticket_id: str) -> Optional[Ticket]:
        return next((t for t in self.tickets if t.id == ticket_id), None)

    def to_status_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "status": self.status,
            "paused": self.paused,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "currentTicketId": self.current_ticket_id,
            "error": self.error,
            "tickets": [ticket_to_dict(t) for t in self.tickets],
            "plan": self.input.plan,
        }

    def to_summary_dict(self) -> Dict[str, Any]:
        done = sum(1 for t in self.tickets if t.status == "done")
        return {
            "runId": self.run_id,
            "status": self.status,
            "paused": self.paused,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "sandboxId": self.input.sandbox_id,
            "model": self.input.model,
            "ticketsTotal": len(self.tickets),
            "ticketsDone": done,
            "error": self.error,
        }


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _ms(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None
