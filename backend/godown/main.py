import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from godown.config import settings
from godown.middleware.exceptions import register_exception_handlers
from godown.routers import billing, health

logging.getLogger("godown").setLevel(settings.log_level.upper())

app = FastAPI(
    title="Godown Billing",
    description="Storage rent and payment allocation for warehouse management",
    version="0.1.0",
    debug=settings.debug,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(billing.router, prefix="/api/billing", tags=["billing"])
