import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from series_service.db.models import Dataset, Feature, Observation
from series_service.errors import InvalidFilterError
from series_service.query.context import QueryContext
from series_service.query.specifications import (
    DataQuerySpecifications,
    DatasetQuerySpecifications,
    combine_all,
    parse_ids,
)

from conftest import WINDOW_START, hours


def _sql(predicate):
    return str(predicate.compile(dialect=postgresql.dialect()))


def test_combine_all_without_predicates_matches_everything():
    assert _sql(combine_all([])) == "true"
    assert _sql(combine_all([None, None])) == "true"


def test_combine_all_skips_missing_predicates():
    predicate = combine_all([None, Dataset.id == 1, None, Dataset.unit == "C"])
    sql = _sql(predicate)
    assert "datasets.id" in sql and "datasets.unit" in sql and " AND " in sql


def test_parse_ids():
    assert parse_ids(["1", " 2 "]) == [1, 2]
    with pytest.raises(InvalidFilterError):
        parse_ids(["1", "two"])


def test_dataset_filters_reject_malformed_ids():
    spec = DatasetQuerySpecifications.of(QueryContext.from_parameters({"features": "lake"}))
    with pytest.raises(InvalidFilterError):
        spec.match_filters()


def test_dataset_filters_select_matching_datasets(session, entities, make_dataset):
    other_feature = Feature(identifier="river", name="River")
    session.add(other_feature)
    session.commit()
    lake = make_dataset()
    river = make_dataset(feature=other_feature)
    make_dataset(feature=other_feature, procedure=entities["reference_procedure"], published=False)

    def run(params):
        spec = DatasetQuerySpecifications.of(QueryContext.from_parameters(params))
        stmt = select(Dataset.id).where(spec.match_filters()).order_by(Dataset.id)
        return list(session.execute(stmt).scalars())

    assert run({}) == [lake.id, river.id]
    assert run({"features": str(other_feature.id)}) == [river.id]
    assert run({"features": str(other_feature.id), "procedures": str(entities["procedure"].id)}) == [river.id]
    assert run({"value_types": "text"}) == []


def test_data_filters_default_excludes_deleted_and_children(session, make_dataset, add_observation, context):
    dataset = make_dataset()
    kept = add_observation(dataset, WINDOW_START + hours(1), 1.0)
    add_observation(dataset, WINDOW_START + hours(2), 2.0, deleted=True)
    add_observation(dataset, WINDOW_START + hours(3), 3.0, parent=True)

    spec = DataQuerySpecifications.of(context, "quantity")
    rows = session.execute(select(Observation).where(spec.match_filters())).scalars().all()
    assert [o.id for o in rows] == [kept.id]

    parents = DataQuerySpecifications.of(context.model_copy(update={"complex_parent": True}), "quantity")
    rows = session.execute(select(Observation).where(parents.match_filters())).scalars().all()
    assert [o.value_quantity for o in rows] == [3.0]


def test_timespan_matches_touching_intervals(session, make_dataset, add_observation, context):
    dataset = make_dataset()
    # ends exactly at the window start
    touching = add_observation(dataset, WINDOW_START, 1.0, start=WINDOW_START - hours(1))
    # spans across the window start
    spanning = add_observation(dataset, WINDOW_START + hours(1), 2.0, start=WINDOW_START - hours(2))
    add_observation(dataset, WINDOW_START - hours(1), 3.0)

    spec = DataQuerySpecifications.of(context)
    stmt = select(Observation.id).where(spec.match_timespan()).order_by(Observation.id)
    assert list(session.execute(stmt).scalars()) == [touching.id, spanning.id]


def test_spatial_and_attribute_filters(session, make_dataset, add_observation):
    dataset = make_dataset()
    inside = add_observation(dataset, WINDOW_START + hours(1), 12.0, longitude=9.5, latitude=46.0)
    add_observation(dataset, WINDOW_START + hours(2), 12.0, longitude=20.0, latitude=46.0)
    add_observation(dataset, WINDOW_START + hours(3), 2.0, longitude=9.5, latitude=46.0)

    context = QueryContext.from_parameters({"bbox": "9,45,10,47", "filter": "value gt 10"})
    spec = DataQuerySpecifications.of(context, "quantity")
    stmt = select(Observation.id).where(spec.match_filters())
    assert list(session.execute(stmt).scalars()) == [inside.id]


def test_explicit_result_times_filter(session, make_dataset, add_observation):
    dataset = make_dataset()
    instant = WINDOW_START + hours(1)
    add_observation(dataset, instant, 1.0, result_time=instant)
    second = add_observation(dataset, instant, 2.0, result_time=instant + hours(1))

    context = QueryContext.from_parameters({"result_time": (instant + hours(1)).isoformat()})
    spec = DataQuerySpecifications.of(context)
    stmt = select(Observation.id).where(spec.match_filters())
    assert list(session.execute(stmt).scalars()) == [second.id]
