"""SWMS and toolbox talk prefill.

Hazard rows and talk content are requested from the text generator unless
the job already carries hazards. Any generator failure or malformed
response raises GenerationError so no draft is written.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from tradedocs.errors import GenerationError
from tradedocs.generation.client import TextGenerator
from tradedocs.models.job import JobRecord

logger = logging.getLogger(__name__)

HAZARD_KEYS = ("task", "hazard", "risk_level", "controls", "responsible")


def build_hazards_prompt(job: JobRecord) -> str:
    return "\n".join(
        [
            "Task: swms_hazards",
            f"Trade: {job.trade_type}",
            f"Property: {job.property_type}",
            f"Job: {job.title}",
            "",
            "List the high-risk construction work hazards for this job as JSON",
            '{"hazards": [{"task", "hazard", "risk_level", "controls", "responsible"}]}.',
            "",
            "Scope:",
            job.ai_scope_of_work or job.notes or "",
        ]
    )


def build_toolbox_prompt(job: JobRecord) -> str:
    return "\n".join(
        [
            "Task: toolbox_talk",
            f"Trade: {job.trade_type}",
            f"Topic: {job.trade_type.title() or 'Site'} safety on {job.title}",
            "",
            "Write a short pre-start toolbox talk as JSON",
            '{"topic", "key_points": [..], "hazards_discussed"}.',
        ]
    )


def _call_json(generator: TextGenerator, prompt: str, job_id: str) -> dict[str, Any]:
    try:
        raw = generator.call(prompt, json_mode=True)
    except Exception as e:
        logger.warning("Text generation failed for job %s: %s", job_id, e)
        raise GenerationError(f"Text generation failed: {e}") from e

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise GenerationError("Text generation returned invalid JSON") from e

    if not isinstance(parsed, dict):
        raise GenerationError("Text generation returned an unexpected payload")
    return parsed


def _normalise_hazard(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        raise GenerationError("Hazard entry is not an object")
    return {key: str(raw.get(key) or "") for key in HAZARD_KEYS}


def generate_hazards(job: JobRecord, generator: TextGenerator) -> list[dict[str, str]]:
    """Return hazard rows for a job, from the job itself or the generator."""
    if job.hazards:
        return [_normalise_hazard(h) for h in job.hazards]

    payload = _call_json(generator, build_hazards_prompt(job), job.id)
    hazards = payload.get("hazards")
    if not isinstance(hazards, list):
        raise GenerationError("Text generation response has no 'hazards' list")
    return [_normalise_hazard(h) for h in hazards]


def generate_toolbox_talk(job: JobRecord, generator: TextGenerator) -> dict[str, Any]:
    payload = _call_json(generator, build_toolbox_prompt(job), job.id)
    points = payload.get("key_points")
    if not isinstance(points, list):
        raise GenerationError("Text generation response has no 'key_points' list")
    return {
        "topic": str(payload.get("topic") or ""),
        "key_points": "\n".join(f"- {p}" for p in points),
        "hazards_discussed": str(payload.get("hazards_discussed") or ""),
    }


def map_swms(job: JobRecord, common: dict[str, Any], hazards: list[dict[str, str]]) -> dict[str, Any]:
    return {
        **common,
        "work_activity": job.title,
        "high_risk_work": [],
        "hazards": hazards,
        "ppe_required": [],
        "emergency_procedures": "",
        "prepared_by": common["company_legal_name"],
        "date_prepared": common["date_issued"],
    }


def map_toolbox_talk(job: JobRecord, common: dict[str, Any], talk: dict[str, Any]) -> dict[str, Any]:
    return {
        **common,
        "talk_date": common["date_issued"],
        "presenter": common["company_legal_name"],
        "topic": talk["topic"],
        "key_points": talk["key_points"],
        "hazards_discussed": talk["hazards_discussed"],
        "attendees": [],
    }
