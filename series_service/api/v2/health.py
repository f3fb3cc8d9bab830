from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from series_service import __version__
from series_service.db.connection import get_db_session
from series_service.errors import StoreUnavailableError

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db_session)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StoreUnavailableError("Database is not reachable") from e
    return {"status": "ok", "version": __version__}
