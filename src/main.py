"""Application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.container import get_container
from src.api.dependencies import limiter
from src.api.routes.agent import router as agent_router
from src.shared.logging import setup_logging

log = structlog.get_logger()


def _apply_logging_config(container):
    """Apply logging from container config (stdout + optional file)."""
    c = container.config
    setup_logging(
        level=c.log_level,
        file_path=c.log_file or "",
        rotation_max_mb=c.log_rotation_max_mb,
        rotation_backups=c.log_rotation_backups,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: setup logging, check the model endpoint; shutdown: close HTTP client."""
    container = get_container()
    _apply_logging_config(container)
    log.info(
        "startup_begin",
        llm_provider=container.config.llm.provider,
        primary_model=container.config.models.primary,
        tools=len(container.tool_registry),
    )
    if not await container.llm.is_available():
        # Not fatal: sessions report upstream/network errors per request
        log.warning("llm_unavailable", base_url=container.config.openai_compatible.base_url)
    log.info("startup_complete")
    yield
    log.info("shutdown_begin")
    if hasattr(container.llm, "close"):
        try:
            await container.llm.close()
        except Exception:  # noqa: BLE001
            log.debug("llm_close_error", exc_info=True)
    log.info("shutdown_complete")


# Create app
app = FastAPI(
    title="Agent Loop",
    version="0.1.0",
    description="Tool-call parsing and bounded agent loop over OpenAI-compatible models",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
container = get_container()
app.add_middleware(
    CORSMiddleware,
    allow_origins=container.config.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agent_router)


@app.get("/health")
@limiter.limit("100/minute")
async def health(request: Request) -> dict:
    """Health check with LLM availability and tool circuit breakers."""
    container = get_container()
    llm_available = await container.llm.is_available()
    return {
        "status": "ok",
        "service": "agent-loop",
        "llm_provider": container.config.llm.provider,
        "llm_available": llm_available,
        "models": {"primary": container.config.models.primary, "fallback": container.config.models.fallback},
        "circuit_breakers": container.tool_runner.breaker_stats(),
    }
