from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from series_service import __version__
from series_service.api.v2 import export, health, routes
from series_service.errors import (
    DeadlineExceededError,
    InvalidFilterError,
    NotFoundError,
    SeriesServiceError,
    StoreUnavailableError,
)
from series_service.utils.logger import logger

app = FastAPI(
    title="Sensor Series Service",
    version=__version__,
    description="Read-only API for sensor observation time series"
)

app.include_router(health.router)
app.include_router(routes.router)
app.include_router(export.router)

STATUS_CODES = {
    InvalidFilterError: 400,
    NotFoundError: 404,
    StoreUnavailableError: 503,
    DeadlineExceededError: 504,
}


@app.exception_handler(SeriesServiceError)
async def handle_series_error(request: Request, exc: SeriesServiceError):
    status_code = STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})
