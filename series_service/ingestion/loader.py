from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from series_service.db.models import VALUE_COLUMN_BY_TYPE, Dataset, Observation
from series_service.errors import InvalidFilterError, StoreUnavailableError
from series_service.ingestion.merger import IDENTITY, get_or_insert_instance, transaction
from series_service.query.filters import to_utc_naive
from series_service.utils.logger import logger


def _as_instant(value) -> datetime | None:
    if value is None:
        return None
    return to_utc_naive(value)


def _to_observation(record: dict, dataset: Dataset) -> Observation:
    end = _as_instant(record.get("sampling_time_end") or record.get("timestamp"))
    if end is None:
        raise InvalidFilterError(f"Observation record without sampling time: {record!r}")
    start = _as_instant(record.get("sampling_time_start")) or end
    observation = Observation(
        dataset_id=dataset.id,
        sampling_time_start=start,
        sampling_time_end=end,
        result_time=_as_instant(record.get("result_time")),
        valid_time_start=_as_instant(record.get("valid_time_start")),
        valid_time_end=_as_instant(record.get("valid_time_end")),
        deleted=bool(record.get("deleted", False)),
        parent=bool(record.get("parent", False)),
        longitude=record.get("longitude"),
        latitude=record.get("latitude"),
    )
    setattr(observation, VALUE_COLUMN_BY_TYPE[dataset.value_type], record.get("value"))
    return observation


def _range_candidate(dataset: Dataset, observations: list[Observation]) -> Dataset:
    first = min(observations, key=lambda o: o.sampling_time_start)
    last = max(observations, key=lambda o: o.sampling_time_end)
    candidate = Dataset(value_type=dataset.value_type, observation_type=dataset.observation_type)
    for name in IDENTITY:
        setattr(candidate, f"{name}_id", getattr(dataset, f"{name}_id"))
    candidate.first_value_at = first.sampling_time_start
    candidate.first_observation_id = first.id
    candidate.last_value_at = last.sampling_time_end
    candidate.last_observation_id = last.id
    if dataset.value_type == "quantity":
        candidate.first_quantity_value = first.value_quantity
        candidate.last_quantity_value = last.value_quantity
    return candidate


def ingest_observations(session: Session, candidate: Dataset, records: list[dict]) -> Dataset:
    """
    Store observation rows for a dataset and extend its first/last pointers.

    The dataset is looked up (or created) by the candidate's identity tuple.
    Deleted rows are stored but never move the pointers.
    """
    if not records:
        logger.warning("No records to insert.")
        return get_or_insert_instance(session, candidate)

    # Deduplicate by sampling instant and result time, last write wins
    unique = {}
    for r in records:
        key = (
            _as_instant(r.get("sampling_time_end") or r.get("timestamp")),
            _as_instant(r.get("result_time")),
        )
        unique[key] = r
    deduped_records = list(unique.values())

    try:
        with transaction(session):
            dataset = get_or_insert_instance(session, candidate, join_transaction=True)
            observations = [_to_observation(r, dataset) for r in deduped_records]
            session.add_all(observations)
            session.flush()

            live = [o for o in observations if not o.deleted]
            if live:
                dataset = get_or_insert_instance(
                    session, _range_candidate(dataset, live), join_transaction=True
                )
    except SQLAlchemyError as e:
        logger.error(f"Observation insert failed: {e}")
        raise StoreUnavailableError("Could not store observations") from e

    logger.info(f"Inserted {len(deduped_records)} observations for dataset '{dataset.id}'.")
    return dataset
