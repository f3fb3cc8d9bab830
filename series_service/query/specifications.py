"""
Query specification builder.

Turns a QueryContext into composable SQLAlchemy boolean predicates over the
dataset and observation tables. Every ``match_*`` method returns either a
predicate or None ("no restriction"); callers collect them and combine with
``combine_all``. Nothing here touches the database.
"""

import operator
from typing import Iterable, Optional

from sqlalchemy import and_, true
from sqlalchemy.sql.elements import ColumnElement

from series_service.db.models import Dataset, Observation
from series_service.db.repository import parse_id
from series_service.query.context import QueryContext, TimeSpan

Predicate = Optional[ColumnElement]

_OPERATORS = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
}

# filter property "value" -> typed column
VALUE_COLUMNS = {
    "quantity": Observation.value_quantity,
    "count": Observation.value_count,
    "text": Observation.value_text,
    "boolean": Observation.value_boolean,
}


def combine_all(predicates: Iterable[Predicate]) -> ColumnElement:
    """AND together the non-null predicates. No predicates matches everything."""
    present = [p for p in predicates if p is not None]
    if not present:
        return true()
    if len(present) == 1:
        return present[0]
    return and_(*present)


def parse_ids(values: Iterable[str]) -> list[int]:
    return [parse_id(v) for v in values]


def _match_in(column, values) -> Predicate:
    if not values:
        return None
    return column.in_(parse_ids(values))


class DatasetQuerySpecifications:
    """Predicates over the datasets table."""

    def __init__(self, context: QueryContext) -> None:
        self.context = context

    @classmethod
    def of(cls, context: QueryContext) -> "DatasetQuerySpecifications":
        return cls(context)

    def match_id(self, identifier) -> Predicate:
        if identifier is None:
            return None
        return Dataset.id == parse_id(identifier)

    def match_ids(self, ids=None) -> Predicate:
        return _match_in(Dataset.id, self.context.datasets if ids is None else ids)

    def match_features(self, ids=None) -> Predicate:
        return _match_in(Dataset.feature_id, self.context.features if ids is None else ids)

    def match_procedures(self, ids=None) -> Predicate:
        return _match_in(Dataset.procedure_id, self.context.procedures if ids is None else ids)

    def match_offerings(self, ids=None) -> Predicate:
        return _match_in(Dataset.offering_id, self.context.offerings if ids is None else ids)

    def match_phenomena(self, ids=None) -> Predicate:
        return _match_in(Dataset.phenomenon_id, self.context.phenomena if ids is None else ids)

    def match_platforms(self, ids=None) -> Predicate:
        return _match_in(Dataset.platform_id, self.context.platforms if ids is None else ids)

    def match_categories(self, ids=None) -> Predicate:
        return _match_in(Dataset.category_id, self.context.categories if ids is None else ids)

    def match_services(self, ids=None) -> Predicate:
        return _match_in(Dataset.service_id, self.context.services if ids is None else ids)

    def match_value_types(self, value_types=None) -> Predicate:
        value_types = self.context.value_types if value_types is None else value_types
        if not value_types:
            return None
        return Dataset.value_type.in_(list(value_types))

    def is_published(self) -> ColumnElement:
        return Dataset.published.is_(True)

    def match_filters(self) -> ColumnElement:
        return combine_all(
            [
                self.is_published(),
                self.match_ids(),
                self.match_features(),
                self.match_procedures(),
                self.match_offerings(),
                self.match_phenomena(),
                self.match_platforms(),
                self.match_categories(),
                self.match_services(),
                self.match_value_types(),
            ]
        )


class DataQuerySpecifications:
    """Predicates over the observations table."""

    def __init__(self, context: QueryContext, value_type: Optional[str] = None) -> None:
        self.context = context
        self.value_type = value_type

    @classmethod
    def of(cls, context: QueryContext, value_type: Optional[str] = None) -> "DataQuerySpecifications":
        return cls(context, value_type)

    def is_not_deleted(self) -> ColumnElement:
        return Observation.deleted.is_(False)

    def match_dataset(self, dataset_id) -> Predicate:
        if dataset_id is None:
            return None
        return Observation.dataset_id == parse_id(dataset_id)

    def match_timespan(self, timespan: Optional[TimeSpan] = None) -> ColumnElement:
        """Rows whose sampling interval lies within or touches the window."""
        timespan = timespan or self.context.timespan
        return and_(
            Observation.sampling_time_start <= timespan.end,
            Observation.sampling_time_end >= timespan.start,
        )

    def match_spatial_filter(self) -> Predicate:
        bbox = self.context.spatial_filter
        if bbox is None:
            return None
        return and_(
            Observation.longitude.between(bbox.min_x, bbox.max_x),
            Observation.latitude.between(bbox.min_y, bbox.max_y),
        )

    def match_result_times(self) -> Predicate:
        if not self.context.has_explicit_result_times:
            return None
        return Observation.result_time.in_(list(self.context.result_times))

    def match_attribute_filter(self) -> Predicate:
        clauses = []
        for clause in self.context.attribute_filter:
            if clause.prop == "value":
                column = self._value_column(clause.value)
            else:
                column = getattr(Observation, clause.prop)
            clauses.append(_OPERATORS[clause.op](column, clause.value))
        return combine_all(clauses) if clauses else None

    def match_parent(self) -> ColumnElement:
        return Observation.parent.is_(self.context.complex_parent)

    def match_filters(self) -> ColumnElement:
        return combine_all(
            [
                self.is_not_deleted(),
                self.match_spatial_filter(),
                self.match_result_times(),
                self.match_attribute_filter(),
                self.match_parent(),
            ]
        )

    def _value_column(self, literal):
        if self.value_type in VALUE_COLUMNS:
            return VALUE_COLUMNS[self.value_type]
        # unknown dataset type: pick the column from the literal
        if isinstance(literal, bool):
            return Observation.value_boolean
        if isinstance(literal, (int, float)):
            return Observation.value_quantity
        return Observation.value_text
