# query specification builder: request context and composable predicates

from series_service.query.context import (
    BoundingBox,
    Deadline,
    QueryContext,
    ResultTimeMode,
    TimeSpan,
    parse_timespan,
)
from series_service.query.specifications import (
    DataQuerySpecifications,
    DatasetQuerySpecifications,
    combine_all,
    parse_ids,
)

__all__ = [
    "BoundingBox",
    "Deadline",
    "QueryContext",
    "ResultTimeMode",
    "TimeSpan",
    "parse_timespan",
    "DataQuerySpecifications",
    "DatasetQuerySpecifications",
    "combine_all",
    "parse_ids",
]
