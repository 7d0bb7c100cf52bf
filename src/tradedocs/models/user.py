"""Resolved caller identity consumed by the document engine."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class UserContext(BaseModel):
    """Identity and entitlement of the caller.

    Produced by the authentication layer; the engine only reads it.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    plan_tier: str = "FREE"
    plan_status: str = "TRIAL"
    is_admin: bool = False
    verified: bool = False
