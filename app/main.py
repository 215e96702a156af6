"""
PromptGate API — Application entry point.

Bootstraps FastAPI, wires up middleware and error handlers, registers
route groups, and manages the MongoDB connection lifecycle.

Process-wide objects are created once here and hung off app.state:
  app.state.generator    — downstream text generator (real or mock)
  app.state.quota_locks  — in-process per-identity locks for the quota engine
  app.state.limiter      — slowapi limiter for the auth endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.ai.generator import build_generator
from app.core.config import APP_VERSION, settings
from app.core.database import close_mongo_connection, connect_to_mongo
from app.core.errors import GateError, Internal
from app.core.rate_limit import limiter
from app.routes.auth import router as auth_router
from app.routes.content import admin_router
from app.routes.content import router as content_router
from app.routes.health import router as health_router
from app.services.quota import KeyedLocks

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting PromptGate API (env: %s)", settings.environment)
    await connect_to_mongo()
    yield
    logger.info("Shutting down PromptGate API")
    await close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="PromptGate API",
    description=(
        "Access gate in front of AI text generation: registered accounts get "
        "unlimited prompts, anonymous callers get one free prompt per 24 hours."
    ),
    version=APP_VERSION,
    lifespan=lifespan,
    # Disable docs in production to reduce attack surface
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)

app.state.generator = build_generator(settings)
app.state.quota_locks = KeyedLocks()


# ─── Rate limiting ─────────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ─── Errors ────────────────────────────────────────────────────────────────────
@app.exception_handler(GateError)
async def gate_error_handler(request: Request, exc: GateError) -> JSONResponse:
    if isinstance(exc, Internal):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=Internal().to_body())


# ─── Middleware ─────────────────────────────────────────────────────────────────
# expose_headers lets browser clients read the issued anonymous session id.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.session_header],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(auth_router)
app.include_router(content_router)

if settings.admin_routes_enabled:
    app.include_router(admin_router)
else:
    logger.info("Admin routes disabled (env: %s)", settings.environment)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "PromptGate API",
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
