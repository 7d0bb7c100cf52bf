"""API key authentication.

Resolves the X-Tradedocs-API-Key header against a JSON registry in
TRADEDOCS_API_KEYS_JSON to a UserContext. Fails closed on missing or invalid
credentials; key comparison is constant-time.

Registry format::

    {"<api key>": {"user_id": "u1", "plan_tier": "PRO", "plan_status": "ACTIVE",
                   "is_admin": false, "verified": true}}
"""

import hmac
import json
import logging
import os
from typing import Annotated

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from tradedocs.api.errors import ApiHttpError
from tradedocs.models.user import UserContext

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Tradedocs-API-Key"
TRADEDOCS_API_KEYS_ENV = "TRADEDOCS_API_KEYS_JSON"


class ApiKeyRecord(BaseModel):
    """API key registry entry."""

    user_id: str
    plan_tier: str = "FREE"
    plan_status: str = "TRIAL"
    is_admin: bool = False
    verified: bool = False


def _load_api_key_registry() -> dict[str, ApiKeyRecord]:
    """Load the API key registry from the environment.

    Returns an empty dict if the variable is missing or not a JSON object;
    malformed entries are skipped.
    """
    raw = os.environ.get(TRADEDOCS_API_KEYS_ENV)
    if not raw:
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Failed to parse %s; treating as empty registry", TRADEDOCS_API_KEYS_ENV)
        return {}

    if not isinstance(parsed, dict):
        logger.warning("%s is not a dict; treating as empty registry", TRADEDOCS_API_KEYS_ENV)
        return {}

    registry: dict[str, ApiKeyRecord] = {}
    for key, value in parsed.items():
        if not isinstance(key, str) or not isinstance(value, dict):
            continue
        try:
            registry[key] = ApiKeyRecord.model_validate(value)
        except ValidationError:
            continue

    return registry


def _constant_time_lookup(
    provided_key: str, registry: dict[str, ApiKeyRecord]
) -> ApiKeyRecord | None:
    """Compare against every registered key with hmac.compare_digest."""
    matched_record: ApiKeyRecord | None = None
    provided_bytes = provided_key.encode("utf-8")

    for registered_key, record in registry.items():
        if hmac.compare_digest(provided_bytes, registered_key.encode("utf-8")):
            matched_record = record

    return matched_record


def authenticate_request(request: Request) -> UserContext:
    """Resolve the caller from the API key header.

    Raises:
        ApiHttpError: 401 if the key is missing, unknown or the registry is empty.
    """
    api_key = request.headers.get(API_KEY_HEADER)
    if not api_key:
        raise ApiHttpError(status_code=401, code="UNAUTHORIZED", message="Missing API key")

    registry = _load_api_key_registry()
    record = _constant_time_lookup(api_key, registry) if registry else None
    if record is None:
        raise ApiHttpError(status_code=401, code="UNAUTHORIZED", message="Invalid API key")

    return UserContext(
        user_id=record.user_id,
        plan_tier=record.plan_tier.upper(),
        plan_status=record.plan_status.upper(),
        is_admin=record.is_admin,
        verified=record.verified,
    )


async def require_user_context(request: Request) -> UserContext:
    """FastAPI dependency that enforces authentication and stores the user on request.state."""
    user = authenticate_request(request)
    request.state.user_context = user
    return user


RequireUserContext = Annotated[UserContext, Depends(require_user_context)]
