"""
Observation store accessor.

Predicate-driven reads against the observations table. Soft-deleted rows
are excluded from every read. Unless noted, results are ordered by sampling
end time ascending. A read that matches nothing returns an empty list or
None; store failures surface as StoreUnavailableError, an elapsed request
deadline as DeadlineExceededError. Nothing is retried here.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased
from sqlalchemy.sql import Select

from series_service.db.models import Dataset, Observation
from series_service.errors import DeadlineExceededError, StoreUnavailableError
from series_service.query.context import QueryContext, TimeSpan
from series_service.query.specifications import DataQuerySpecifications, Predicate, combine_all
from series_service.utils.logger import logger

TIME_COLUMNS = {
    "sampling_time_start": Observation.sampling_time_start,
    "sampling_time_end": Observation.sampling_time_end,
}

DEFAULT_ORDER = (Observation.sampling_time_end.asc(), Observation.id.asc())


def _time_column(column):
    if isinstance(column, str):
        try:
            return TIME_COLUMNS[column]
        except KeyError:
            raise ValueError(f"Not a sampling time column: {column!r}") from None
    return column


class DataDao:
    """Reads observations for one session. Stateless beyond the session."""

    def __init__(self, session: Session, value_type: Optional[str] = None) -> None:
        self.session = session
        self.value_type = value_type

    def _execute(self, stmt, context: Optional[QueryContext]):
        deadline = context.deadline if context is not None else None
        if deadline is not None:
            deadline.check()
        try:
            if deadline is not None:
                self._apply_statement_timeout(deadline.remaining())
            result = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            if deadline is not None and deadline.expired:
                raise DeadlineExceededError("Request deadline exceeded during store call") from e
            logger.error(f"Observation store read failed: {e}")
            raise StoreUnavailableError("Could not read observations from store") from e
        if deadline is not None:
            # late results are discarded, never returned partially
            deadline.check()
        return result

    def _apply_statement_timeout(self, remaining: float) -> None:
        bind = self.session.get_bind()
        if bind.dialect.name != "postgresql":
            return
        millis = max(1, int(remaining * 1000))
        self.session.execute(text(f"SET LOCAL statement_timeout = {millis}"))

    def default_criteria(self, context: QueryContext, order=DEFAULT_ORDER) -> Select:
        spec = DataQuerySpecifications.of(context, self.value_type)
        return select(Observation).where(spec.match_filters()).order_by(*order)

    def latest_result_times(self, dataset: Dataset, column, context: QueryContext):
        """
        Aggregation step of result-time disambiguation.

        Projects ``(column, dataset_id, max(result_time))`` grouped by the time
        column and dataset, over the dataset's live rows. Joined back against
        the outer query, it keeps the most recently asserted row per instant.
        """
        column = _time_column(column)
        rt = aliased(Observation, name="rt")
        rt_column = getattr(rt, column.key)
        return (
            select(
                rt_column.label("rt_column"),
                rt.dataset_id.label("rt_dataset_id"),
                func.max(rt.result_time).label("max_result_time"),
            )
            .where(
                rt.dataset_id == dataset.id,
                rt.deleted.is_(False),
                rt.parent.is_(context.complex_parent),
            )
            .group_by(rt_column, rt.dataset_id)
            .subquery("latest_result_times")
        )

    def data_criteria(self, column, dataset: Dataset, context: QueryContext, order=DEFAULT_ORDER) -> Select:
        column = _time_column(column)
        stmt = self.default_criteria(context, order).where(Observation.dataset_id == dataset.id)
        if context.all_result_times or context.has_explicit_result_times:
            # explicit result times are already part of the default filters
            return stmt
        latest = self.latest_result_times(dataset, column, context)
        return stmt.join(
            latest,
            and_(
                column == latest.c.rt_column,
                Observation.dataset_id == latest.c.rt_dataset_id,
                Observation.result_time.is_not_distinct_from(latest.c.max_result_time),
            ),
        )

    def get_instance(self, key: int, context: Optional[QueryContext] = None) -> Optional[Observation]:
        logger.debug(f"get observation '{key}'")
        stmt = select(Observation).where(Observation.id == key, Observation.deleted.is_(False))
        rows = self._execute(stmt, context)
        return rows[0] if rows else None

    def get_all(
        self,
        context: QueryContext,
        predicate: Predicate = None,
        timespan: Optional[TimeSpan] = None,
    ) -> List[Observation]:
        """All matching rows touching the timespan (context window by default)."""
        spec = DataQuerySpecifications.of(context, self.value_type)
        stmt = self.default_criteria(context).where(
            combine_all([predicate, spec.match_timespan(timespan)])
        )
        return self._execute(stmt, context)

    def get_all_for(self, dataset: Dataset, context: QueryContext) -> List[Observation]:
        logger.debug(f"get all observations for dataset '{dataset.id}': {context.timespan}")
        return self.get_all(context, Observation.dataset_id == dataset.id)

    def get_closest_before(
        self, dataset: Dataset, lower_bound: datetime, context: QueryContext
    ) -> Optional[Observation]:
        """The row starting strictly before ``lower_bound``, closest to it."""
        column = Observation.sampling_time_start
        order = (column.desc(), Observation.id.desc())
        stmt = self.data_criteria(column, dataset, context, order).where(column < lower_bound).limit(1)
        rows = self._execute(stmt, context)
        return rows[0] if rows else None

    def get_closest_after(
        self, dataset: Dataset, upper_bound: datetime, context: QueryContext
    ) -> Optional[Observation]:
        """The row ending strictly after ``upper_bound``, closest to it."""
        column = Observation.sampling_time_end
        order = (column.asc(), Observation.id.asc())
        stmt = self.data_criteria(column, dataset, context, order).where(column > upper_bound).limit(1)
        rows = self._execute(stmt, context)
        return rows[0] if rows else None

    def get_at_result_time(
        self, dataset: Dataset, timestamp: datetime, column, context: QueryContext
    ) -> List[Observation]:
        """
        Rows at an exact timestamp on ``column``, disambiguated by result time.

        All result times: every row at that instant. Explicit result times:
        the rows asserted at those times. Default: the latest assertion only.
        """
        column = _time_column(column)
        logger.debug(f"get data @{timestamp} ({column.key}) for '{dataset.id}'")
        order = (Observation.result_time.asc(), Observation.id.asc())
        stmt = self.data_criteria(column, dataset, context, order).where(column == timestamp)
        return self._execute(stmt, context)

    def get_value_at(self, dataset: Dataset, timestamp: Optional[datetime], column, context: QueryContext):
        """Single-value form of get_at_result_time: the latest asserted row or None."""
        if timestamp is None:
            return None
        rows = self.get_at_result_time(dataset, timestamp, column, context)
        return rows[-1] if rows else None

    def get_value_via_timestart(self, dataset: Dataset, context: QueryContext) -> Optional[Observation]:
        return self.get_value_at(dataset, dataset.first_value_at, "sampling_time_start", context)

    def get_value_via_timeend(self, dataset: Dataset, context: QueryContext) -> Optional[Observation]:
        return self.get_value_at(dataset, dataset.last_value_at, "sampling_time_end", context)
