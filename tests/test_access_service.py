import pytest

from series_service.db.models import Feature
from series_service.errors import InvalidFilterError, NotFoundError
from series_service.query.context import QueryContext
from series_service.services.access_service import TimeseriesAccessService, to_frame

from conftest import WINDOW_END, WINDOW_START, hours


@pytest.fixture
def two_series(session, make_dataset, add_observation):
    river = Feature(identifier="river", name="River")
    session.add(river)
    session.commit()
    lake = make_dataset()
    stream = make_dataset(feature=river)
    add_observation(lake, WINDOW_START + hours(1), 1.0)
    add_observation(lake, WINDOW_START + hours(2), 2.0)
    add_observation(stream, WINDOW_START + hours(1), 10.0)
    return lake, stream


def test_bulk_data(session, two_series, context):
    lake, stream = two_series

    collection = TimeseriesAccessService(session).get_data([str(lake.id), str(stream.id)], context)
    assert list(collection) == [str(lake.id), str(stream.id)]
    assert [v.value for v in collection[str(lake.id)].values] == [1.0, 2.0]
    assert [v.value for v in collection[str(stream.id)].values] == [10.0]


def test_dataset_ids_default_to_context(session, two_series):
    lake, _ = two_series
    context = QueryContext.from_parameters(
        {"timespan": f"{WINDOW_START.isoformat()}/{WINDOW_END.isoformat()}", "datasets": str(lake.id)}
    )

    collection = TimeseriesAccessService(session).get_data(None, context)
    assert list(collection) == [str(lake.id)]


def test_expanded_data_carries_metadata(session, two_series, add_observation):
    lake, _ = two_series
    add_observation(lake, WINDOW_START - hours(1), 0.5)
    context = QueryContext.from_parameters(
        {"timespan": f"{WINDOW_START.isoformat()}/{WINDOW_END.isoformat()}", "expanded": "true"}
    )

    data = TimeseriesAccessService(session).get_data_for(str(lake.id), context)
    assert data.metadata.value_before_timespan.value == 0.5
    assert data.metadata.value_after_timespan is None


def test_unknown_dataset_fails_the_request(session, two_series, context):
    lake, _ = two_series
    service = TimeseriesAccessService(session)

    with pytest.raises(NotFoundError):
        service.get_data([str(lake.id), "4711"], context)
    with pytest.raises(InvalidFilterError):
        service.get_data(["lake"], context)


def test_unknown_value_type_is_left_out(session, entities, two_series, make_dataset, context):
    lake, _ = two_series
    vector = make_dataset(value_type="vector", procedure=entities["reference_procedure"])

    collection = TimeseriesAccessService(session).get_data([str(lake.id), str(vector.id)], context)
    assert list(collection) == [str(lake.id)]


def test_to_frame(session, two_series, context):
    lake, stream = two_series
    collection = TimeseriesAccessService(session).get_data([str(lake.id), str(stream.id)], context)

    frame = to_frame(collection)
    assert list(frame.columns) == ["dataset_id", "timestamp", "value"]
    assert len(frame) == 3
    assert frame[frame.dataset_id == str(stream.id)]["value"].tolist() == [10.0]


def test_to_frame_of_nothing_keeps_columns():
    frame = to_frame({})
    assert frame.empty
    assert list(frame.columns) == ["dataset_id", "timestamp", "value"]
