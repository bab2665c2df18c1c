import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mycotrack.config import settings
from mycotrack.middleware.exceptions import register_exception_handlers
from mycotrack.routers import batches, deliveries, health, inventory, stage_logs

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="MycoTrack",
    description="Mushroom production batch tracking: stock, blocks, maturity and delivery",
    version="0.1.0",
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
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(stage_logs.router, prefix="/api/batches", tags=["stage-logs"])
app.include_router(batches.router, prefix="/api/batches", tags=["batches"])
app.include_router(deliveries.router, prefix="/api/deliveries", tags=["deliveries"])
app.include_router(deliveries.alerts_router, prefix="/api/alerts", tags=["alerts"])
