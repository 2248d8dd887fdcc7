"""
Chais Pas - let fate decide for you.

HTTP API around the decision engine and the per-user decision analytics.
Authentication happens upstream; the caller's identity arrives as X-User-Id.
"""

import logging

import sentry_sdk
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from chaispas import config
from chaispas.analytics import AnalyticsService
from chaispas.database import SqlDecisionStore, get_db, record_submission
from chaispas.errors import IntegrityError, ParseError, StorageUnavailable, ValidationError
from chaispas.models import (
    DecideRequest,
    DecideResponse,
    SaveDecisionRequest,
    SaveDecisionResponse,
)
from chaispas.randomizer import run_decision

logger = logging.getLogger(__name__)


def initiate_sentry():
    if not config.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry initialized")


initiate_sentry()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id"],
)


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    logger.error("Storage unavailable on %s: %s", request.url.path, exc)
    sentry_sdk.capture_exception(exc)
    return JSONResponse(content={"error": "Storage unavailable"}, status_code=503)


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="No user provided")
    return x_user_id


def get_analytics(
    user_id: str = Depends(get_user_id), db: Session = Depends(get_db)
) -> AnalyticsService:
    return AnalyticsService(SqlDecisionStore(db, user_id))


@app.get("/")
def read_root():
    return {"status": "ok"}


@app.post("/api/decide", response_model=DecideResponse)
def decide_for_me(request: DecideRequest):
    """Pick one of the submitted choices at random."""
    try:
        outcome = run_decision(request.choices)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return DecideResponse(selected_choice=outcome.choice, decision_time=outcome.decision_time)


@app.post("/api/decisions/save", response_model=SaveDecisionResponse, status_code=201)
def save_decision(
    request: SaveDecisionRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Store a decision the client made, choices and winner together."""
    try:
        decision = record_submission(db, user_id, request)
    except IntegrityError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return SaveDecisionResponse(decision_id=decision.id)


@app.get("/api/analytics/user")
def user_analytics(analytics: AnalyticsService = Depends(get_analytics)):
    summary = analytics.calculate_analytics()
    headers = {}
    if analytics.last_error is not None:
        headers["X-Storage-Degraded"] = "true"
    return JSONResponse(
        content=summary.model_dump(mode="json", by_alias=True), headers=headers
    )


@app.get("/api/analytics/export")
def export_analytics(analytics: AnalyticsService = Depends(get_analytics)):
    return PlainTextResponse(analytics.export_analytics(), media_type="application/json")


@app.post("/api/analytics/import")
async def import_analytics(
    request: Request, analytics: AnalyticsService = Depends(get_analytics)
):
    """Replace the user's decision log with an exported one."""
    body = await request.body()
    try:
        log = analytics.import_analytics(body.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="Import must be UTF-8 text") from e
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"success": True, "imported": len(log)}


@app.delete("/api/analytics")
def clear_analytics(analytics: AnalyticsService = Depends(get_analytics)):
    analytics.clear_analytics()
    return {"success": True}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=config.LOG_LEVEL)
    uvicorn.run(app, host="0.0.0.0", port=8000)
