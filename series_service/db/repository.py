"""
Identifier handling shared by the dataset and observation lookups.

External ids arrive as strings (path segments, comma separated filters);
primary keys are integers.
"""

from series_service.errors import InvalidFilterError


def parse_id(value) -> int:
    """Parse an external id into the integer primary key type."""
    if isinstance(value, bool):
        raise InvalidFilterError(f"Invalid identifier: {value!r}")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidFilterError(f"Invalid identifier: {value!r}") from None
