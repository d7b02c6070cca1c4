"""Pydantic models used by the HTTP API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PollerStatus(BaseModel):
    """State of the background poll timer."""

    enabled: bool
    running: bool
    interval_seconds: float
    runs: int = 0
    last_run_at: Optional[str] = None
    last_error: Optional[Dict[str, str]] = None
    consecutive_failures: int = 0


class HealthResponse(BaseModel):
    """Response model for the `/health` endpoint."""

    ok: bool = True
    sent_count: int
    target_url: str
    sent_file: str
    poller: PollerStatus


class SentIdsResponse(BaseModel):
    ok: bool = True
    sent_order_ids: List[str]


class ResetResponse(BaseModel):
    ok: bool = True
    message: str


class PollOutcomeModel(BaseModel):
    """Outcome of one order within a poll cycle."""

    order_id: Optional[str] = None
    attempted: bool
    delivered: bool
    marked: bool
    detail: str
    http_status: Optional[int] = None
    error: Optional[str] = None
    response: Dict[str, Any] = Field(default_factory=dict)


class PollResponse(BaseModel):
    ok: bool = True
    forwarded_attempts: int
    delivered: int
    results: List[PollOutcomeModel]


class LastPollResponse(BaseModel):
    ok: bool = True
    last_run_at: Optional[str] = None
    results: List[PollOutcomeModel]


class TargetReceipt(BaseModel):
    """Reply of the built-in demo target."""

    ok: bool = True
    ref: str
    received: Dict[str, Any]
