from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from noor.api.routers import (
    activity,
    auth,
    employees,
    files,
    finance,
    milestones,
    report,
    sites,
    tasks,
)
from noor.infra.audit import AuditMiddleware
from noor.infra.db import check_db_ready
from noor.infra.events import event_bus
from noor.infra.log import configure_logging
from noor.services.event_handlers import register_event_handlers

configure_logging()
logger = logging.getLogger("noor.main")

app = FastAPI(
    title="noor-construction",
    description="Workforce and project management backend for construction sites.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(employees.router, prefix="/api/admin/employees", tags=["employees"])
app.include_router(sites.router, prefix="/api", tags=["sites"])
app.include_router(tasks.router, prefix="/api", tags=["tasks"])
app.include_router(activity.router, prefix="/api/admin/workers", tags=["activity"])
app.include_router(files.router, prefix="/api/files", tags=["files"])
app.include_router(milestones.router, prefix="/api", tags=["milestones"])
app.include_router(finance.router, prefix="/api", tags=["finance"])
app.include_router(report.router, prefix="/api/admin", tags=["report"])

register_event_handlers(event_bus)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
