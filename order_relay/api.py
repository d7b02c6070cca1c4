"""API routes for the relay service."""

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import ConfigError, RelayConfig
from .connectors.commerce import CommerceError
from .coordinator import PollCoordinator, PollOutcome
from .ledger import LedgerWriteError
from .models import (
    HealthResponse,
    LastPollResponse,
    PollOutcomeModel,
    PollResponse,
    ResetResponse,
    SentIdsResponse,
    TargetReceipt,
)
from .scheduler import PollScheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_config(request: Request) -> RelayConfig:
    return request.app.state.config


def get_coordinator(request: Request) -> PollCoordinator:
    return request.app.state.coordinator


def get_scheduler(request: Request) -> PollScheduler:
    return request.app.state.scheduler


async def verify_token(
    authorization: str = Header(""),
    config: RelayConfig = Depends(get_config),
) -> None:
    """Validate ``Authorization`` header against the configured ``API_TOKEN``."""

    if not config.api_token:
        return
    expected = f"Bearer {config.api_token}"
    if authorization != expected and authorization != config.api_token:
        raise HTTPException(status_code=401, detail="Unauthorized")


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": str(exc)})


def _outcome_model(outcome: PollOutcome) -> PollOutcomeModel:
    return PollOutcomeModel(**outcome.to_dict())


# Routers
public_router = APIRouter()
protected_router = APIRouter()
target_router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------

@public_router.get("/health", response_model=HealthResponse)
async def health(
    config: RelayConfig = Depends(get_config),
    coordinator: PollCoordinator = Depends(get_coordinator),
    scheduler: PollScheduler = Depends(get_scheduler),
) -> HealthResponse:
    ledger = coordinator.ledger
    return HealthResponse(
        sent_count=ledger.size,
        target_url=config.target_url,
        sent_file=ledger.path,
        poller=scheduler.status(),
    )


# ---------------------------------------------------------------------------
# Ledger administration
# ---------------------------------------------------------------------------

@protected_router.get("/admin/sent", response_model=SentIdsResponse)
async def read_sent(coordinator: PollCoordinator = Depends(get_coordinator)) -> SentIdsResponse:
    """Return every order id recorded as forwarded."""
    return SentIdsResponse(sent_order_ids=coordinator.sent_ids())


@protected_router.post("/admin/sent/reset", response_model=ResetResponse)
async def reset_sent(coordinator: PollCoordinator = Depends(get_coordinator)) -> Any:
    """Clear the sent ledger so every order becomes eligible again."""
    try:
        await coordinator.reset_ledger()
    except LedgerWriteError as exc:
        logger.error("Ledger reset failed: %s", exc)
        return _error(500, exc)
    return ResetResponse(message="sent_order_ids cleared")


@protected_router.get("/admin/last-poll", response_model=LastPollResponse)
async def read_last_poll(
    coordinator: PollCoordinator = Depends(get_coordinator),
) -> LastPollResponse:
    last_run = coordinator.last_run_at.isoformat() if coordinator.last_run_at else None
    return LastPollResponse(
        last_run_at=last_run,
        results=[_outcome_model(o) for o in coordinator.last_outcomes],
    )


# ---------------------------------------------------------------------------
# Manual triggers
# ---------------------------------------------------------------------------

@protected_router.post("/run/poll-once", response_model=PollResponse)
async def poll_once(coordinator: PollCoordinator = Depends(get_coordinator)) -> Any:
    """Run one poll cycle and report what happened to each order."""
    try:
        outcomes = await coordinator.run_once()
    except (ConfigError, CommerceError) as exc:
        logger.error("[POLL] manual cycle failed: %s", exc)
        return _error(500, exc)
    return PollResponse(
        forwarded_attempts=sum(1 for o in outcomes if o.attempted),
        delivered=sum(1 for o in outcomes if o.delivered),
        results=[_outcome_model(o) for o in outcomes],
    )


@protected_router.post("/run/forward/{order_id}")
async def forward_order(
    order_id: str, coordinator: PollCoordinator = Depends(get_coordinator)
) -> JSONResponse:
    """Fetch a single order, forward it and mark it on success."""
    try:
        outcome = await coordinator.forward_one(order_id)
    except CommerceError as exc:
        status = 404 if exc.status_code == 404 else 500
        logger.error("[FORWARD] fetch of order %s failed: %s", order_id, exc)
        return _error(status, exc)
    except ConfigError as exc:
        return _error(500, exc)

    body = {"ok": outcome.delivered, **_outcome_model(outcome).model_dump()}
    return JSONResponse(status_code=200 if outcome.delivered else 502, content=body)


# ---------------------------------------------------------------------------
# Demo target (replace TARGET_URL to point at a real system)
# ---------------------------------------------------------------------------

@target_router.post("/target/orders", response_model=TargetReceipt)
async def receive_order(payload: Dict[str, Any]) -> TargetReceipt:
    logger.info(
        "[TARGET] Received order: %s",
        payload.get("increment_id") or payload.get("order_id"),
    )
    return TargetReceipt(
        ref=f"TGT-{int(time.time() * 1000)}",
        received={
            "order_id": payload.get("order_id"),
            "increment_id": payload.get("increment_id"),
        },
    )
