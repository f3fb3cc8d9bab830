from fastapi import Request

from series_service.config.settings import settings
from series_service.query.context import Deadline, QueryContext


def get_query_context(request: Request) -> QueryContext:
    """Build the request's query context from its query string."""
    context = QueryContext.from_parameters(dict(request.query_params))
    if context.deadline is None and settings.REQUEST_TIMEOUT_SECONDS > 0:
        context = context.with_deadline(Deadline.after(settings.REQUEST_TIMEOUT_SECONDS))
    return context
