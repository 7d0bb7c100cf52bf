"""Provider-agnostic text generation interface + deterministic backend.

TextGenerator: Protocol for text-generation calls used during prefill.
DeterministicTextGenerator: Offline backend that answers from built-in
trade safety content. Used by default and in tests.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TASK_MARKER = "Task: "
TRADE_MARKER = "Trade: "
TOPIC_MARKER = "Topic: "


class TextGenerator(Protocol):
    """Provider-agnostic interface for text generation."""

    def call(self, prompt: str, *, json_mode: bool = False) -> str:
        """Send a prompt and return the raw response text.

        Args:
            prompt: The full prompt text.
            json_mode: If True, request JSON-formatted output.

        Returns:
            Raw response string.
        """
        ...


_GENERIC_HAZARDS: list[dict[str, str]] = [
    {
        "task": "Site setup and access",
        "hazard": "Slips, trips and falls",
        "risk_level": "Medium",
        "controls": "Keep walkways clear; secure leads and drop sheets; adequate lighting",
        "responsible": "Site supervisor",
    },
    {
        "task": "Manual handling of materials",
        "hazard": "Strain and sprain injuries",
        "risk_level": "Medium",
        "controls": "Use trolleys; team lift items over 20 kg; keep loads close to body",
        "responsible": "All workers",
    },
]

_TRADE_HAZARDS: dict[str, list[dict[str, str]]] = {
    "painting": [
        {
            "task": "Work at height on ladders and trestles",
            "hazard": "Fall from height",
            "risk_level": "High",
            "controls": "Platform ladders on firm level ground; three points of contact; "
            "no work above 2 m without edge protection",
            "responsible": "Leading hand",
        },
        {
            "task": "Surface preparation and sanding",
            "hazard": "Dust inhalation, lead paint exposure",
            "risk_level": "High",
            "controls": "Test for lead before sanding; P2 respirator; wet sanding; "
            "vacuum with HEPA filter",
            "responsible": "All workers",
        },
        {
            "task": "Application of solvent-based coatings",
            "hazard": "Vapour inhalation, fire",
            "risk_level": "Medium",
            "controls": "Ventilate work area; no ignition sources; store solvents in "
            "approved containers; refer to SDS",
            "responsible": "All workers",
        },
    ],
    "plastering": [
        {
            "task": "Sheet handling and fixing to ceilings",
            "hazard": "Falling sheets, overhead strain",
            "risk_level": "High",
            "controls": "Use sheet lifter; two-person lift; support sheets until fixed",
            "responsible": "Leading hand",
        },
        {
            "task": "Cutting and sanding plasterboard",
            "hazard": "Silica and gypsum dust",
            "risk_level": "Medium",
            "controls": "Score and snap instead of power cutting; P2 respirator; "
            "extraction on sanders",
            "responsible": "All workers",
        },
    ],
    "carpentry": [
        {
            "task": "Use of power saws and nail guns",
            "hazard": "Cuts, amputation, projectile nails",
            "risk_level": "High",
            "controls": "Guards in place; sequential trigger nail guns; eye and hearing "
            "protection; keep hands clear of blade line",
            "responsible": "All workers",
        },
    ],
    "electrical": [
        {
            "task": "Work on or near electrical installations",
            "hazard": "Electric shock, arc flash",
            "risk_level": "High",
            "controls": "Isolate, lock out and tag; test before touch; licensed "
            "electrician only; insulated tools",
            "responsible": "Licensed electrician",
        },
    ],
}

_TOOLBOX_POINTS: dict[str, list[str]] = {
    "default": [
        "Review the SWMS for today's tasks before starting",
        "Report hazards and near misses to the supervisor immediately",
        "Wear the PPE required for each task",
        "Keep the work area clean and exits clear",
        "Know the location of the first aid kit and emergency assembly point",
    ],
}


def _read_marker(prompt: str, marker: str) -> str:
    for line in prompt.splitlines():
        if line.startswith(marker):
            return line[len(marker) :].strip()
    return ""


class DeterministicTextGenerator:
    """Offline text generator - returns built-in content keyed on the prompt's task line.

    No external calls are made. Output is stable for a given prompt.
    """

    def call(self, prompt: str, *, json_mode: bool = False) -> str:
        """Return deterministic JSON for the task named in the prompt.

        Args:
            prompt: Prompt text containing ``Task:`` and ``Trade:`` lines.
            json_mode: Ignored; always returns JSON.

        Returns:
            JSON string.
        """
        task = _read_marker(prompt, TASK_MARKER)
        trade = _read_marker(prompt, TRADE_MARKER).lower()

        payload: Any
        if task == "swms_hazards":
            payload = {"hazards": _TRADE_HAZARDS.get(trade, []) + _GENERIC_HAZARDS}
        elif task == "toolbox_talk":
            topic = _read_marker(prompt, TOPIC_MARKER) or "Site safety"
            payload = {
                "topic": topic,
                "key_points": list(_TOOLBOX_POINTS["default"]),
                "hazards_discussed": ", ".join(
                    h["hazard"] for h in _TRADE_HAZARDS.get(trade, _GENERIC_HAZARDS)
                ),
            }
        else:
            logger.debug("Deterministic generator received unknown task %r", task)
            payload = {}

        return json.dumps(payload, sort_keys=True)
