# conduct_log/main.py
from __future__ import annotations

from fastapi import FastAPI

from conduct_log import __version__
from conduct_log.core.config import ENABLE_CREATE_ALL
from conduct_log.core.errors import register_exception_handlers
from conduct_log.core.logging import setup_logging
from conduct_log.db.session import engine

# MODELS (registers every table on Base.metadata)
from conduct_log.models import Base

from conduct_log.api import health
from conduct_log.api.v1 import audit_logs, incidents, reference
from conduct_log.middleware.request_logging import RequestLoggingMiddleware

setup_logging()

# ---------------------------
# CREATE TABLES (dev-only; disable when Alembic manages the schema)
# ---------------------------
if ENABLE_CREATE_ALL:
    Base.metadata.create_all(bind=engine)

# ---------------------------
# APP
# ---------------------------
app = FastAPI(
    title="Conduct Log",
    version=__version__,
    description="Conduct and behaviour incident register",
)

register_exception_handlers(app)
app.add_middleware(RequestLoggingMiddleware)

# ---------------------------
# ROUTER MOUNT
# ---------------------------
app.include_router(incidents.router, prefix="/api/v1")
app.include_router(reference.router, prefix="/api/v1")
app.include_router(audit_logs.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api")
