from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from internal.streaming.parser import FileBlock
from .errors import CollaboratorError
from .base import HTTPCollaborator

BLOCKING_WARNING_TYPES = ("security", "bug")


@dataclass
class ReviewIssue:
    severity: str
    type: str = ""
    message: str = ""
    file: Optional[str] = None
    line: Optional[int] = None

    @property
    def blocking(self) -> bool:
        if self.severity == "error":
            return True
        return self.severity == "warning" and self.type in BLOCKING_WARNING_TYPES


@dataclass
class ReviewResult:
    issues: List[ReviewIssue] = field(default_factory=list)

    @property
    def blocking(self) -> bool:
        return any(issue.blocking for issue in self.issues)

    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")


def review_from_dict(data: Any) -> ReviewResult:
    raw = data.get("issues") if isinstance(data, dict) else None
    issues = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict):
            continue
        line = item.get("line")
        issues.append(
            ReviewIssue(
                severity=str(item.get("severity") or ""),
                type=str(item.get("type") or ""),
                message=str(item.get("message") or ""),
                file=item.get("file"),
                line=line if isinstance(line, int) else None,
            )
        )
    return ReviewResult(issues=issues)


class ReviewClient(HTTPCollaborator):
    path = "/api/review-code"

    def review(self, base_url: str, ticket_id: str, ticket_title: str, files: Sequence[FileBlock]) -> ReviewResult:
        body: Dict[str, Any] = {
            "ticketId": ticket_id,
            "ticketTitle": ticket_title,
            "files": [f.to_dict() for f in files],
        }
        try:
            with self._client() as client:
                resp = client.post(self._url(base_url), json=body)
        except httpx.HTTPError as err:
            raise CollaboratorError(f"Review request failed: {err}") from err
        if not resp.is_success:
            raise CollaboratorError(f"Review failed (HTTP {resp.status_code})", resp.status_code)
        try:
            data = resp.json()
        except ValueError as err:
            raise CollaboratorError("Review returned invalid JSON") from err
        return review_from_dict(data)
