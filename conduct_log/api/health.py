# conduct_log/api/health.py
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from conduct_log import __version__
from conduct_log.core.timeutil import now_iso
from conduct_log.db.session import get_db

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz() -> dict:
    # liveness: 200 while the process is up
    return {
        "ok": True,
        "service": "conduct_log",
        "version": __version__,
        "status": "healthy",
        "ts": now_iso(),
    }


@router.get("/readyz")
def readyz(db: Session = Depends(get_db)):
    # readiness: DB ping + latency
    t0 = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "db": "down", "error": str(e)},
            headers={"Cache-Control": "no-store"},
        )
    latency_ms = (time.perf_counter() - t0) * 1000.0
    return JSONResponse(
        status_code=200,
        content={"ok": True, "db": "up", "db_latency_ms": round(latency_ms, 2)},
        headers={"Cache-Control": "no-store"},
    )
