"""Liveness and readiness checks."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from analytics_service.db.dependencies import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")


@router.get("")
def liveness() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", response_model=None)
def readiness(db: Session = Depends(get_db_session)) -> dict[str, str] | JSONResponse:
    """Report whether the operational store answers a trivial query."""

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Readiness check failed")
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
    return {"status": "ok", "database": "up"}
