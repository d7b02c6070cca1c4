# order_relay/main.py
from __future__ import annotations

import logging
import sys
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .api import protected_router, public_router, target_router, verify_token
from .config import RelayConfig, load_config
from .connectors.commerce import CommerceConnector
from .connectors.target import TargetForwarder
from .coordinator import Forwarder, OrderSource, PollCoordinator
from .ledger import SentLedger
from .scheduler import PollScheduler

logger = logging.getLogger("order_relay")


# -----------------------------------------------------------------------------
# Logging: wire our app loggers to Uvicorn's console.
# -----------------------------------------------------------------------------
def _setup_app_logging(level: str = "INFO") -> None:
    """
    Make all `order_relay.*` loggers print to the same console as uvicorn.
    If uvicorn handlers are not ready yet, attach a StreamHandler to root so
    logs still show up.
    """
    root = logging.getLogger()
    uvicorn_err = logging.getLogger("uvicorn.error")
    uv_handlers = list(uvicorn_err.handlers)

    if not uv_handlers and not root.handlers:
        h = logging.StreamHandler(stream=sys.stdout)
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(h)

    lg = logging.getLogger("order_relay")
    lg.setLevel(getattr(logging, level, logging.INFO))
    if uv_handlers:
        lg.handlers = uv_handlers
        lg.propagate = False
    else:
        lg.propagate = True


# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------
def create_app(
    config: Optional[RelayConfig] = None,
    *,
    source: Optional[OrderSource] = None,
    forwarder: Optional[Forwarder] = None,
    ledger: Optional[SentLedger] = None,
) -> FastAPI:
    """Build the application and every collaborator it owns.

    ``source``, ``forwarder`` and ``ledger`` replace the HTTP connectors and
    the file-backed ledger built from ``config``.
    """

    cfg = config or load_config()
    _setup_app_logging(cfg.log_level)

    # clients built here are closed on shutdown; injected ones belong to the caller
    owned_clients = []
    if source is None:
        source = CommerceConnector(
            cfg.commerce_base_url, cfg.commerce_access_token, timeout=cfg.http_timeout
        )
        owned_clients.append(source)
    if forwarder is None:
        forwarder = TargetForwarder(
            cfg.target_url,
            timeout=cfg.http_timeout,
            source_name=cfg.source_name,
            order_id_field=cfg.order_id_field,
        )
        owned_clients.append(forwarder)
    if ledger is None:
        ledger = SentLedger(cfg.sent_file)
    coordinator = PollCoordinator(
        source,
        forwarder,
        ledger,
        page_size=cfg.page_size,
        order_id_field=cfg.order_id_field,
    )
    scheduler = PollScheduler(coordinator, cfg.poll_interval)

    app = FastAPI(title="Order Relay", version="1.0.0", docs_url="/docs")
    app.state.config = cfg
    app.state.coordinator = coordinator
    app.state.scheduler = scheduler

    # Routers
    app.include_router(public_router)
    app.include_router(protected_router, dependencies=[Depends(verify_token)])
    if cfg.enable_dummy_target:
        app.include_router(target_router)

    # -------------------------------------------------------------------------
    # Exception handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})

    # -------------------------------------------------------------------------
    # Lifespan
    # -------------------------------------------------------------------------
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Relay started: target=%s sent_file=%s", cfg.target_url, ledger.path)
        scheduler.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await scheduler.stop()
        for client in owned_clients:
            await client.aclose()
        logger.info("Relay shutdown")

    return app


def run() -> None:
    """Serve the relay with uvicorn using the environment configuration."""
    import uvicorn

    cfg = load_config()
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    run()
