from __future__ import annotations

import json
from typing import Any, Dict, Optional

from .models import Ticket

RULES = (
    "Rules:\n"
    "- Implement the ticket completely.\n"
    "- Preserve existing routes/navigation and the mock-first data layer.\n"
    "- Create new files if required by this ticket.\n"
    '- Output ONLY <file path="..."> blocks for files you changed/created.'
)


def build_ticket_prompt(
    ticket: Ticket,
    template: str,
    blueprint: Optional[Dict[str, Any]] = None,
    ui_style: Any = None,
) -> str:
    out = "Implement the following ticket in the existing application.\n\n"
    out += f"Template: {template}\n"
    if ui_style:
        out += "\n\nUI STYLE (apply consistently across all tickets):\n"
        out += json.dumps(ui_style, indent=2) + "\n"
    out += "Blueprint (high-level contract):\n"
    out += (json.dumps(blueprint, indent=2) if blueprint else "(none)") + "\n\n"
    out += "Ticket:\n"
    out += f"- Title: {ticket.title}\n"
    out += f"- Description: {ticket.description}\n\n"
    out += RULES
    return out
