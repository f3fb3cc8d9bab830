import io

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from series_service.api.deps import get_query_context
from series_service.db.connection import get_db_session
from series_service.query.context import QueryContext
from series_service.services.access_service import TimeseriesAccessService, to_frame

router = APIRouter(prefix="/v2/export", tags=["Export"])


@router.get("/data/csv")
def export_data_csv(
    context: QueryContext = Depends(get_query_context),
    db: Session = Depends(get_db_session),
):
    collection = TimeseriesAccessService(db).get_data(context.datasets, context)
    df = to_frame(collection)

    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    buffer.seek(0)

    return StreamingResponse(
        buffer,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=data.csv"},
    )
