"""
Pytest configuration and shared fixtures for all tests.

Tests run against an in-memory SQLite database built from the ORM models.
"""

import os

# must be set before series_service.config.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from series_service.db.models import (
    Base,
    Category,
    Dataset,
    Feature,
    Observation,
    Offering,
    Phenomenon,
    Platform,
    Procedure,
    Service,
)
from series_service.query.context import QueryContext

WINDOW_START = datetime(2024, 1, 1, 0, 0, 0)
WINDOW_END = datetime(2024, 1, 2, 0, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as s:
        yield s


@pytest.fixture
def entities(session):
    """One of each reference entity, committed."""
    created = {
        "service": Service(identifier="svc", name="Test Service", no_data_values="-9999,n/a"),
        "procedure": Procedure(identifier="thermometer", name="Thermometer"),
        "reference_procedure": Procedure(identifier="baseline", name="Baseline", reference=True,
                                         translations={"de": "Grundlinie"}),
        "phenomenon": Phenomenon(identifier="temp", name="Temperature"),
        "feature": Feature(identifier="lake", name="Lake", longitude=9.2, latitude=46.0),
        "offering": Offering(identifier="off", name="Offering"),
        "platform": Platform(identifier="buoy", name="Buoy"),
        "category": Category(identifier="cat", name="Water"),
    }
    session.add_all(created.values())
    session.commit()
    return created


@pytest.fixture
def make_dataset(session, entities):
    def _make(value_type="quantity", procedure=None, feature=None, **kwargs):
        dataset = Dataset(
            value_type=value_type,
            observation_type=kwargs.pop("observation_type", "simple"),
            procedure=procedure or entities["procedure"],
            phenomenon=entities["phenomenon"],
            feature=feature or entities["feature"],
            offering=entities["offering"],
            platform=entities["platform"],
            category=entities["category"],
            service=entities["service"],
            **kwargs,
        )
        session.add(dataset)
        session.commit()
        return dataset

    return _make


@pytest.fixture
def add_observation(session):
    def _add(dataset, end, value=None, start=None, result_time=None, deleted=False,
             parent=False, column="value_quantity", longitude=None, latitude=None):
        observation = Observation(
            dataset_id=dataset.id,
            sampling_time_start=start or end,
            sampling_time_end=end,
            result_time=result_time,
            deleted=deleted,
            parent=parent,
            longitude=longitude,
            latitude=latitude,
        )
        setattr(observation, column, value)
        session.add(observation)
        session.commit()
        return observation

    return _add


@pytest.fixture
def context():
    return QueryContext.from_parameters(
        {"timespan": f"{WINDOW_START.isoformat()}/{WINDOW_END.isoformat()}"}
    )


def hours(n):
    return timedelta(hours=n)
