import pytest

from series_service.assembler.dataset import DatasetAssembler, is_congruent_values
from series_service.assembler.outputs import Value
from series_service.db.models import Feature
from series_service.errors import InvalidFilterError, NotFoundError
from series_service.query.context import QueryContext

from conftest import WINDOW_START, hours


def _point_pointers(session, dataset, first, last):
    dataset.first_value_at = first.sampling_time_start
    dataset.first_observation_id = first.id
    dataset.last_value_at = last.sampling_time_end
    dataset.last_observation_id = last.id
    session.commit()


def _features(session, *names):
    created = [Feature(identifier=name, name=name.title()) for name in names]
    session.add_all(created)
    session.commit()
    return created


def test_is_congruent_values():
    a = Value(timestamp=WINDOW_START, value=1.0)
    b = Value(timestamp=WINDOW_START, value=2.0)
    c = Value(timestamp=WINDOW_START + hours(1), value=2.0)
    assert is_congruent_values(a, b)
    assert not is_congruent_values(a, c)
    assert is_congruent_values(None, None)
    assert not is_congruent_values(a, None)


def test_reference_series_with_congruent_values_repeats_first(
    session, entities, make_dataset, add_observation, context
):
    reference = make_dataset(procedure=entities["reference_procedure"])
    instant = WINDOW_START + hours(2)
    first = add_observation(reference, instant, 1.0, result_time=instant)
    last = add_observation(reference, instant, 2.0, result_time=instant + hours(1))
    _point_pointers(session, reference, first, last)

    output = DatasetAssembler(session).get_instance(str(reference.id), context)
    assert output.first_value.value == 1.0
    assert output.last_value.value == 1.0
    assert output.last_value.timestamp == output.first_value.timestamp


def test_regular_series_keeps_its_last_value(session, make_dataset, add_observation, context):
    dataset = make_dataset()
    instant = WINDOW_START + hours(2)
    first = add_observation(dataset, instant, 1.0, result_time=instant)
    last = add_observation(dataset, instant, 2.0, result_time=instant + hours(1))
    _point_pointers(session, dataset, first, last)

    output = DatasetAssembler(session).get_instance(str(dataset.id), context)
    assert output.first_value.value == 1.0
    assert output.last_value.value == 2.0


def test_expanded_output(session, make_dataset, add_observation, context):
    dataset = make_dataset(unit="degC")
    first = add_observation(dataset, WINDOW_START + hours(1), 4.0)
    last = add_observation(dataset, WINDOW_START + hours(8), 9.0)
    _point_pointers(session, dataset, first, last)

    output = DatasetAssembler(session).get_instance(str(dataset.id), context)
    assert output.id == str(dataset.id)
    assert output.label == "Temperature Thermometer, Lake"
    assert output.unit == "degC"
    assert output.first_value.timestamp == WINDOW_START + hours(1)
    assert output.last_value.value == 9.0
    assert output.reference_values == []
    assert output.dataset_parameters.feature.label == "Lake"
    assert output.dataset_parameters.service.id == str(dataset.service_id)


def test_dataset_parameters_ignore_entity_filters(session, make_dataset):
    dataset = make_dataset()
    context = QueryContext.from_parameters({"features": "999", "expanded": "true"})

    output = DatasetAssembler(session).get_instance(str(dataset.id), context)
    assert output.dataset_parameters.feature.id == str(dataset.feature_id)


def test_unknown_value_type_degrades_to_metadata_only(session, make_dataset, context):
    dataset = make_dataset(value_type="vector")

    output = DatasetAssembler(session).get_instance(str(dataset.id), context)
    assert output.value_type == "vector"
    assert output.dataset_parameters is not None
    assert output.first_value is None
    assert output.last_value is None
    assert output.reference_values is None


def test_missing_or_unpublished_dataset_is_not_found(session, make_dataset, context):
    hidden = make_dataset(published=False)
    assembler = DatasetAssembler(session)

    with pytest.raises(NotFoundError):
        assembler.get_instance("4711", context)
    with pytest.raises(NotFoundError):
        assembler.get_instance(str(hidden.id), context)
    with pytest.raises(InvalidFilterError):
        assembler.get_instance("abc", context)


def test_condensed_listing_is_paged(session, make_dataset, context):
    north, south, east = _features(session, "north", "south", "east")
    datasets = [make_dataset(feature=f) for f in (north, south, east)]
    make_dataset(published=False)
    assembler = DatasetAssembler(session)

    listed = assembler.get_all_condensed(context)
    assert [d.id for d in listed] == [str(d.id) for d in datasets]
    assert listed[0].first_value is None
    assert listed[0].dataset_parameters is None

    paged = assembler.get_all_condensed(context.model_copy(update={"offset": 1, "limit": 1}))
    assert [d.id for d in paged] == [str(datasets[1].id)]


def test_expanded_listing_respects_filters(session, make_dataset):
    north, south = _features(session, "north", "south")
    make_dataset(feature=north)
    wanted = make_dataset(feature=south)

    context = QueryContext.from_parameters({"features": str(south.id), "expanded": "true"})
    listed = DatasetAssembler(session).get_all_expanded(context)
    assert [d.id for d in listed] == [str(wanted.id)]
    assert listed[0].dataset_parameters.feature.label == "South"


def test_dataset_types_are_grouped_over_matching_datasets(session, make_dataset, context):
    north, south, east, west = _features(session, "north", "south", "east", "west")
    make_dataset(feature=north)
    make_dataset(feature=south)
    make_dataset(value_type="text", feature=east)
    make_dataset(value_type="category", feature=west, published=False)
    assembler = DatasetAssembler(session)

    types = assembler.get_dataset_types_metadata(context)
    assert [(t.observation_type, t.value_type, t.dataset_count) for t in types] == [
        ("simple", "quantity", 2),
        ("simple", "text", 1),
    ]

    filtered = assembler.get_dataset_types_metadata(QueryContext.from_parameters({"features": str(east.id)}))
    assert [(t.value_type, t.dataset_count) for t in filtered] == [("text", 1)]
