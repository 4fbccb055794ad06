from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict


class StartBuildRunRequest(TypedDict, total=False):
    sandboxId: str
    model: str
    plan: Dict[str, Any]
    tickets: List[Dict[str, Any]]
    uiStyle: Any
    onlyTicketId: Optional[str]


class StartBuildRunResponse(TypedDict):
    success: bool
    runId: str


class RunStatusView(TypedDict):
    runId: str
    status: str
    paused: bool
    createdAt: int
    updatedAt: int
    currentTicketId: Optional[str]
    error: Optional[str]
    tickets: List[Dict[str, Any]]
    plan: Optional[Dict[str, Any]]


class RunStatusResponse(TypedDict):
    success: bool
    run: RunStatusView


class RunControlResponse(TypedDict):
    success: bool
    status: str
    paused: bool


class RetryTicketResponse(TypedDict):
    success: bool
    runId: str
    retryOf: str
