"""
Dataset metadata merger.

Locates a dataset by its identity tuple and applies a monotonic merge of the
cached first/last value pointers: the first pointer only moves earlier, the
last pointer only moves later, and nothing is written when neither moves.

The read-check-write runs in one transaction with the dataset row locked
(SELECT ... FOR UPDATE), so concurrent candidates for the same dataset
serialize instead of clobbering each other.
"""

from contextlib import contextmanager
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from series_service.db.models import Dataset
from series_service.errors import InvalidFilterError, StoreUnavailableError
from series_service.query.context import QueryContext
from series_service.query.specifications import DatasetQuerySpecifications, combine_all
from series_service.utils.logger import logger

# identity component -> specification matcher
IDENTITY = {
    "feature": "match_features",
    "procedure": "match_procedures",
    "offering": "match_offerings",
    "phenomenon": "match_phenomena",
    "platform": "match_platforms",
    "service": "match_services",
}


def _component_id(candidate: Dataset, name: str) -> Optional[int]:
    value = getattr(candidate, f"{name}_id")
    if value is None:
        related = getattr(candidate, name)
        value = related.id if related is not None else None
    return value


def identity_predicate(candidate: Dataset):
    """AND of every identity component present on the candidate."""
    spec = DatasetQuerySpecifications.of(QueryContext.from_parameters())
    predicates = []
    for name, matcher in IDENTITY.items():
        component = _component_id(candidate, name)
        if component is not None:
            predicates.append(getattr(spec, matcher)([str(component)]))
    if not predicates:
        raise InvalidFilterError("Dataset candidate carries no identity component")
    return combine_all(predicates)


@contextmanager
def transaction(session: Session, join: bool = False):
    """
    Run the block in a transaction of its own and commit it on exit.

    With ``join=True`` an already open transaction is reused instead and the
    caller keeps commit and rollback. Without it, whatever the session has
    open (usually the implicit transaction of an earlier read) is committed
    first, so the block's writes and row locks are bounded by its own commit.
    """
    if join and session.in_transaction():
        yield False
        return
    if session.in_transaction():
        session.commit()
    with session.begin():
        yield True


def merge_into(session: Session, instance: Dataset, candidate: Dataset) -> Dataset:
    first_changed = candidate.first_value_at is not None and (
        instance.first_value_at is None or candidate.first_value_at < instance.first_value_at
    )
    last_changed = candidate.last_value_at is not None and (
        instance.last_value_at is None or candidate.last_value_at > instance.last_value_at
    )
    if first_changed:
        instance.first_value_at = candidate.first_value_at
        instance.first_observation_id = candidate.first_observation_id
        instance.first_quantity_value = candidate.first_quantity_value
    if last_changed:
        instance.last_value_at = candidate.last_value_at
        instance.last_observation_id = candidate.last_observation_id
        instance.last_quantity_value = candidate.last_quantity_value
    if first_changed or last_changed:
        session.flush()
        logger.info(
            f"Merged dataset '{instance.id}': "
            f"first={instance.first_value_at} last={instance.last_value_at}"
        )
    return instance


def _lock_existing(session: Session, predicate) -> Optional[Dataset]:
    stmt = select(Dataset).where(predicate).order_by(Dataset.id).limit(1).with_for_update()
    return session.execute(stmt).scalars().first()


def _get_or_insert(session: Session, candidate: Dataset, predicate) -> Dataset:
    instance = _lock_existing(session, predicate)
    if instance is None:
        session.add(candidate)
        session.flush()
        logger.info(f"Inserted dataset '{candidate.id}' ({candidate.value_type})")
        return candidate
    return merge_into(session, instance, candidate)


def get_or_insert_instance(session: Session, candidate: Dataset, join_transaction: bool = False) -> Dataset:
    """
    Insert the candidate as a new dataset or merge its range into the existing one.

    Commits on return unless ``join_transaction`` is set and the caller has a
    transaction open, in which case the caller commits.
    """
    predicate = identity_predicate(candidate)
    try:
        try:
            with transaction(session, join=join_transaction):
                return _get_or_insert(session, candidate, predicate)
        except IntegrityError:
            if join_transaction and session.in_transaction():
                # caller owns the transaction and has to roll it back
                raise
            # lost an insert race on the identity tuple: merge into the winner
            logger.warning("Concurrent dataset insert detected, retrying as merge")
            with transaction(session):
                return _get_or_insert(session, candidate, predicate)
    except SQLAlchemyError as e:
        logger.error(f"Dataset merge failed: {e}")
        raise StoreUnavailableError("Could not merge dataset metadata") from e
