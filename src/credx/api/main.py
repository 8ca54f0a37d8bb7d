"""
credX Rules API

Serves the admin Rules Engine page (rule store, manual runs, execution
history) and the ticket intake used by the customer portal.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from credx.platform.config import settings
from credx.platform.logging import configure_logging, get_logger
from credx.api.routers import executions, rules, tickets
from credx.api.dependencies import close_resources, get_postgres_adapter, init_resources
from credx.rules.actions.registry import ActionRegistry
from credx.rules.errors import PersistenceError

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("credx_rules_starting", env=settings.APP_ENV)
    try:
        init_resources()
    except Exception as e:
        logger.error("credx_rules_startup_failed", error=str(e))
        raise
    logger.info("credx_rules_ready", actions=ActionRegistry.registered())

    yield

    close_resources()
    logger.info("credx_rules_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Ticket routing rules for the credX admin dashboard and customer portal",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/metrics", make_asgi_app())


@app.exception_handler(PersistenceError)
@app.exception_handler(SQLAlchemyError)
async def store_unavailable(request: Request, exc: Exception) -> JSONResponse:
    """The rule store or execution log could not be reached."""
    logger.error("store_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Rule store unavailable, try again shortly"},
    )


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================

@app.get("/health/live", tags=["Health"])
async def liveness() -> dict:
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
async def readiness() -> dict:
    """Ready once the database answers and action handlers are registered."""
    postgres_healthy = get_postgres_adapter().health_check()
    actions = ActionRegistry.registered()
    ready = postgres_healthy and bool(actions)
    return {
        "status": "ready" if ready else "not_ready",
        "version": settings.VERSION,
        "checks": {
            "postgres": "healthy" if postgres_healthy else "unhealthy",
            "actions": actions,
        },
    }


app.include_router(rules.router, prefix="/api/v1/rules", tags=["Rules"])
app.include_router(executions.router, prefix="/api/v1/executions", tags=["Executions"])
app.include_router(tickets.router, prefix="/api/v1/tickets", tags=["Tickets"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "credx.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
