"""Pydantic schemas for routing decisions."""

from pydantic import BaseModel


class RoutingDecision(BaseModel):
    """Schema for a routing outcome."""

    kind: str
    location: str
    workspace_id: str | None = None
