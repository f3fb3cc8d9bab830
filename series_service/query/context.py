"""
Query context: the immutable request descriptor threaded through every read.

Built once per request from raw parameters (HTTP query string, service
call kwargs) via ``QueryContext.from_parameters``. Parsing errors surface as
InvalidFilterError before any store access happens.
"""

import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

from series_service.config.settings import settings
from series_service.errors import DeadlineExceededError, InvalidFilterError
from series_service.query.filters import FilterClause, parse_attribute_filter, to_utc_naive


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ResultTimeMode(str, Enum):
    ALL = "all"
    EXPLICIT = "explicit"
    LATEST = "latest"


class TimeSpan(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


class Deadline(BaseModel):
    """Request-scoped deadline on the monotonic clock."""

    model_config = ConfigDict(frozen=True)

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return self.expires_at - time.monotonic()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self) -> None:
        if self.expired:
            raise DeadlineExceededError("Request deadline exceeded")


def _parse_duration(text: str) -> timedelta:
    try:
        return pd.Timedelta(text).to_pytimedelta()
    except (TypeError, ValueError) as e:
        raise InvalidFilterError(f"Invalid duration: {text!r}") from e


def _parse_instant(text: str, now: datetime) -> datetime:
    if text.strip().lower() == "now":
        return now
    return to_utc_naive(text.strip())


def _is_duration(text: str) -> bool:
    return text.strip().upper().startswith("P")


def parse_timespan(raw: str, now: Optional[datetime] = None) -> TimeSpan:
    """Parse ``start/end``, ``start/duration`` or ``duration/end`` (ISO 8601)."""
    now = now or utcnow()
    parts = raw.split("/")
    if len(parts) != 2:
        raise InvalidFilterError(f"Invalid timespan: {raw!r}")
    left, right = parts
    if _is_duration(left) and _is_duration(right):
        raise InvalidFilterError(f"Timespan needs at least one instant: {raw!r}")
    if _is_duration(left):
        end = _parse_instant(right, now)
        start = end - _parse_duration(left)
    elif _is_duration(right):
        start = _parse_instant(left, now)
        end = start + _parse_duration(right)
    else:
        start = _parse_instant(left, now)
        end = _parse_instant(right, now)
    if start > end:
        raise InvalidFilterError(f"Timespan start is after its end: {raw!r}")
    return TimeSpan(start=start, end=end)


def default_timespan(now: Optional[datetime] = None) -> TimeSpan:
    return parse_timespan(f"{settings.DEFAULT_TIMESPAN}/now", now=now)


def _as_list(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        values = value.split(",")
    else:
        values = []
        for item in value:
            values.extend(str(item).split(","))
    return tuple(v.strip() for v in values if v.strip())


def _as_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no", ""):
        return False
    raise InvalidFilterError(f"Invalid boolean: {value!r}")


def _as_int(value, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidFilterError(f"Invalid integer: {value!r}") from None
    if number < 0:
        raise InvalidFilterError(f"Negative value not allowed: {value!r}")
    return number


def _parse_bbox(value) -> Optional[BoundingBox]:
    coords = _as_list(value)
    if not coords:
        return None
    if len(coords) != 4:
        raise InvalidFilterError(f"bbox needs minx,miny,maxx,maxy: {value!r}")
    try:
        min_x, min_y, max_x, max_y = (float(c) for c in coords)
    except ValueError:
        raise InvalidFilterError(f"Invalid bbox: {value!r}") from None
    if min_x > max_x or min_y > max_y:
        raise InvalidFilterError(f"Degenerate bbox: {value!r}")
    return BoundingBox(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)


class QueryContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    timespan: TimeSpan
    result_time_mode: ResultTimeMode = ResultTimeMode.LATEST
    result_times: Tuple[datetime, ...] = ()
    spatial_filter: Optional[BoundingBox] = None
    attribute_filter: Tuple[FilterClause, ...] = ()
    locale: str = settings.DEFAULT_LOCALE
    offset: int = 0
    limit: Optional[int] = None
    complex_parent: bool = False

    datasets: Tuple[str, ...] = ()
    features: Tuple[str, ...] = ()
    procedures: Tuple[str, ...] = ()
    offerings: Tuple[str, ...] = ()
    phenomena: Tuple[str, ...] = ()
    platforms: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    services: Tuple[str, ...] = ()
    value_types: Tuple[str, ...] = ()

    expanded: bool = False
    show_time_intervals: bool = False
    show_result_times: bool = False
    deadline: Optional[Deadline] = None

    @classmethod
    def from_parameters(cls, params: Optional[Mapping[str, Any]] = None) -> "QueryContext":
        params = dict(params or {})

        raw_timespan = params.get("timespan")
        timespan = parse_timespan(raw_timespan) if raw_timespan else default_timespan()

        raw_result_time = params.get("result_time")
        result_times: Tuple[datetime, ...] = ()
        if raw_result_time is None or str(raw_result_time).strip().lower() in ("", "latest"):
            mode = ResultTimeMode.LATEST
        elif str(raw_result_time).strip().lower() == "all":
            mode = ResultTimeMode.ALL
        else:
            mode = ResultTimeMode.EXPLICIT
            result_times = tuple(to_utc_naive(v) for v in _as_list(raw_result_time))

        timeout = params.get("timeout")
        deadline = None
        if timeout not in (None, "", 0, "0"):
            try:
                deadline = Deadline.after(float(timeout))
            except (TypeError, ValueError):
                raise InvalidFilterError(f"Invalid timeout: {timeout!r}") from None

        return cls(
            timespan=timespan,
            result_time_mode=mode,
            result_times=result_times,
            spatial_filter=_parse_bbox(params.get("bbox")),
            attribute_filter=parse_attribute_filter(params.get("filter")),
            locale=params.get("locale") or settings.DEFAULT_LOCALE,
            offset=_as_int(params.get("offset"), 0),
            limit=_as_int(params.get("limit"), None),
            complex_parent=_as_bool(params.get("complex_parent")),
            datasets=_as_list(params.get("datasets")),
            features=_as_list(params.get("features")),
            procedures=_as_list(params.get("procedures")),
            offerings=_as_list(params.get("offerings")),
            phenomena=_as_list(params.get("phenomena")),
            platforms=_as_list(params.get("platforms")),
            categories=_as_list(params.get("categories")),
            services=_as_list(params.get("services")),
            value_types=_as_list(params.get("value_types")),
            expanded=_as_bool(params.get("expanded")),
            show_time_intervals=_as_bool(params.get("show_time_intervals")),
            show_result_times=_as_bool(params.get("show_result_times")),
            deadline=deadline,
        )

    @property
    def all_result_times(self) -> bool:
        return self.result_time_mode is ResultTimeMode.ALL

    @property
    def has_explicit_result_times(self) -> bool:
        return self.result_time_mode is ResultTimeMode.EXPLICIT and bool(self.result_times)

    def with_timespan(self, timespan: TimeSpan) -> "QueryContext":
        return self.model_copy(update={"timespan": timespan})

    def with_deadline(self, deadline: Optional[Deadline]) -> "QueryContext":
        return self.model_copy(update={"deadline": deadline})

    def without_filters(self) -> "QueryContext":
        """Same request without the entity id filters, e.g. for metadata reads."""
        return self.model_copy(
            update={
                "datasets": (),
                "features": (),
                "procedures": (),
                "offerings": (),
                "phenomena": (),
                "platforms": (),
                "categories": (),
                "services": (),
                "value_types": (),
            }
        )
