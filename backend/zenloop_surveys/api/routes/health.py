from fastapi import APIRouter, Depends
from sqlalchemy import text

from zenloop_surveys.database.session import get_db_session

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/api/health/readiness")
def readiness(db=Depends(get_db_session)):
    """Readiness probe that checks the session database answers."""
    db.execute(text("SELECT 1"))
    return {"status": "ready", "checks": {"database": "ok"}}
