"""Campus marketplace FastAPI application.

Serves listings, carts, checkout sessions, orders and quote requests over
HTTP. Commands are processed synchronously inside a marketplace domain
context pushed for every request.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.config import settings
from marketplace.domain import marketplace
from marketplace.utils.logging import bind_request, clear_request

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay from domain.toml ("test" in the suite).
marketplace.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Campus Marketplace API",
    description="Stock reservation, checkout, orders and service quotes",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the marketplace domain context and bind request details for logging."""
    bind_request(
        request_id=request.headers.get("x-request-id") or uuid4().hex,
        method=request.method,
        path=request.url.path,
    )
    try:
        with marketplace.domain_context():
            response = await call_next(request)
    finally:
        clear_request()
    return response


# ---------------------------------------------------------------------------
# Error handlers and routers
# ---------------------------------------------------------------------------
from marketplace.api.errors import register_error_handlers  # noqa: E402
from marketplace.api.routes import routers  # noqa: E402

register_error_handlers(app)

for router in routers:
    app.include_router(router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": marketplace.name,
            "environment": settings.environment,
        }
    )
