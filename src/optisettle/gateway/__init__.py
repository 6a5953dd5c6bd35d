"""
HTTP gateway for the settlement engine.

Usage:

    from optisettle.gateway import create_app, run

    app = create_app(engine, StaticOperatorSet(["0xoperator"]))
    run()  # engine and bind address from settings
"""

from __future__ import annotations

import logging
from typing import Optional

from optisettle.core.settings import OptisettleSettings, get_settings

from .app import create_app, error_response
from .auth import OPERATOR_HEADER, Authorizer, StaticOperatorSet

logger = logging.getLogger(__name__)


def run(
    settings: Optional[OptisettleSettings] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """Build the engine from settings and serve the gateway with uvicorn."""
    import uvicorn

    from optisettle.engine import SettlementEngine

    settings = settings or get_settings()
    engine = SettlementEngine.from_settings(settings)
    authorizer = StaticOperatorSet(settings.gateway.operator_set)
    if not len(authorizer):
        logger.warning("No operators configured; operator routes will return 403")
    app = create_app(engine, authorizer)

    bind_host = host or settings.gateway.host
    bind_port = port or settings.gateway.port
    logger.info("Gateway listening on %s:%s", bind_host, bind_port)
    try:
        uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.runtime.log_level.lower())
    finally:
        engine.store.close()


__all__ = [
    "OPERATOR_HEADER",
    "Authorizer",
    "StaticOperatorSet",
    "create_app",
    "error_response",
    "run",
]
