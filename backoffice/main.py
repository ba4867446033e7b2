"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — configured once from settings.LOG_LEVEL
  2. Lifespan manager — builds the Store (engine + sessions), creates tables,
     disposes of it on shutdown
  3. Middleware — CORS and request logging
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn backoffice.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.config import settings
from backoffice.database import Store
from backoffice.exceptions import register_exception_handlers
from backoffice.middleware import RequestLogMiddleware
from backoffice.routers import accounts, admin, auth, bets, funding

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Builds the Store and installs it on app.state, unless one is already
      installed (tests bring their own). Creates all tables if they don't
      exist; in production you'd use migrations instead.

    Shutdown:
      Disposes of the engine, closing all connections cleanly.
    """
    # --- Startup ---
    store = getattr(app.state, "store", None)
    if store is None:
        store = Store(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            isolation_level=settings.DB_ISOLATION_LEVEL,
        )
        app.state.store = store
    await store.create_all()
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await store.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Trading back-office: funding requests, bet settlement and balance ledger",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

# CORS: Allow the admin frontend origins to make requests.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(funding.router, tags=["Funding"])
app.include_router(bets.router, tags=["Bets"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment probes."""
    return {"status": "ok", "version": settings.APP_VERSION}
