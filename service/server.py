"""
FastAPI application entry point.

Startup sequence (via lifespan):
  1. Configure the structured event log
  2. Load the Tor exit-node list (fallback chain, never fails startup)
  3. Start APScheduler: Tor refresh, request-log flush, one-shot VPN load

Shutdown stops the jobs and flushes buffered request logs so nothing
recorded in memory is lost on a clean stop.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from api.routes import router
from config import settings
from context import GuardianContext
from fastapi import FastAPI

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Manage startup and shutdown lifecycle."""
    ctx: GuardianContext = application.state.context
    logger.info(
        "Starting Guardian risk gate (block_vpn_tor=%s, strict_mode=%s)",
        ctx.policy.block_vpn_tor,
        ctx.policy.strict_mode,
    )

    await ctx.start()

    yield  # Application runs here

    await ctx.shutdown()
    logger.info("Service shutdown complete")


def create_app(context: Optional[GuardianContext] = None) -> FastAPI:
    application = FastAPI(
        title="Guardian Risk Gate",
        description=(
            "Scores inbound clients from Tor/VPN membership, geolocation, "
            "IP reputation and user-agent heuristics, and decides whether "
            "each request is allowed or blocked."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    application.state.context = context or GuardianContext(settings)
    application.include_router(router)
    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
