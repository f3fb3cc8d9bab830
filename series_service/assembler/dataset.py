"""
Dataset assembler: condensed and expanded dataset outputs.

Expanded outputs carry first/last value, reference values and the dataset
parameters block. When no value assembler exists for a dataset's type, the
value fields stay None and the rest of the output is still returned.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from series_service.assembler.outputs import (
    DatasetOutput,
    DatasetParameters,
    DatasetTypesMetadata,
    ParameterOutput,
    Value,
)
from series_service.assembler.registry import AssemblerRegistry, assembler_registry
from series_service.config.settings import settings
from series_service.db.models import Dataset
from series_service.errors import AssemblerNotFoundError, NotFoundError, StoreUnavailableError
from series_service.ingestion.merger import get_or_insert_instance
from series_service.query.context import QueryContext
from series_service.query.specifications import DatasetQuerySpecifications, combine_all
from series_service.services.labels import dataset_label, label_for
from series_service.utils.logger import logger


def is_congruent_values(first_value: Optional[Value], last_value: Optional[Value]) -> bool:
    first_timestamp = first_value.timestamp if first_value is not None else None
    last_timestamp = last_value.timestamp if last_value is not None else None
    return first_timestamp == last_timestamp


def _parameter(entity, context: QueryContext) -> Optional[ParameterOutput]:
    if entity is None:
        return None
    return ParameterOutput(id=str(entity.id), label=label_for(entity, context.locale))


class DatasetAssembler:

    def __init__(self, session: Session, registry: AssemblerRegistry = assembler_registry) -> None:
        self.session = session
        self.registry = registry

    def _select(self, stmt) -> List[Dataset]:
        try:
            return list(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Dataset read failed: {e}")
            raise StoreUnavailableError("Could not read datasets from store") from e

    def get_entity(self, dataset_id, context: QueryContext) -> Dataset:
        if context.deadline is not None:
            context.deadline.check()
        spec = DatasetQuerySpecifications.of(context)
        stmt = select(Dataset).where(combine_all([spec.is_published(), spec.match_id(dataset_id)]))
        rows = self._select(stmt)
        if not rows:
            raise NotFoundError("Dataset", dataset_id)
        return rows[0]

    def get_all_entities(self, context: QueryContext) -> List[Dataset]:
        if context.deadline is not None:
            context.deadline.check()
        spec = DatasetQuerySpecifications.of(context)
        stmt = (
            select(Dataset)
            .where(spec.match_filters())
            .order_by(Dataset.id)
            .offset(context.offset)
            .limit(context.limit or settings.DEFAULT_LIMIT)
        )
        return self._select(stmt)

    def get_dataset_types_metadata(self, context: QueryContext) -> List[DatasetTypesMetadata]:
        """Distinct (observation type, value type) pairs among the datasets matching the filters."""
        if context.deadline is not None:
            context.deadline.check()
        spec = DatasetQuerySpecifications.of(context)
        stmt = (
            select(Dataset.observation_type, Dataset.value_type, func.count(Dataset.id))
            .where(spec.match_filters())
            .group_by(Dataset.observation_type, Dataset.value_type)
            .order_by(Dataset.observation_type, Dataset.value_type)
        )
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.error(f"Dataset types read failed: {e}")
            raise StoreUnavailableError("Could not read dataset types from store") from e
        return [
            DatasetTypesMetadata(observation_type=observation_type, value_type=value_type, dataset_count=count)
            for observation_type, value_type, count in rows
        ]

    def assemble_condensed(self, dataset: Dataset, context: QueryContext) -> DatasetOutput:
        return DatasetOutput(
            id=str(dataset.id),
            label=dataset_label(dataset, context.locale),
            value_type=dataset.value_type,
            observation_type=dataset.observation_type,
            unit=dataset.unit,
        )

    def assemble_expanded(self, dataset: Dataset, context: QueryContext) -> DatasetOutput:
        result = self.assemble_condensed(dataset, context)
        result.dataset_parameters = self.create_dataset_parameters(dataset, context.without_filters())
        try:
            assembler = self.registry.create_for(dataset, self.session)
        except AssemblerNotFoundError as e:
            logger.warning(f"Dataset '{dataset.id}' assembled without values: {e}")
            return result

        first_value = assembler.get_first_value(dataset, context)
        last_value = assembler.get_last_value(dataset, context)
        if dataset.is_reference_series and is_congruent_values(first_value, last_value):
            # a reference series must still present a valid interval
            last_value = first_value

        result.reference_values = assembler.get_reference_values(dataset, context)
        result.first_value = first_value
        result.last_value = last_value
        return result

    def create_dataset_parameters(self, dataset: Dataset, context: QueryContext) -> DatasetParameters:
        return DatasetParameters(
            service=_parameter(dataset.service, context),
            offering=_parameter(dataset.offering, context),
            procedure=_parameter(dataset.procedure, context),
            phenomenon=_parameter(dataset.phenomenon, context),
            category=_parameter(dataset.category, context),
            platform=_parameter(dataset.platform, context),
            feature=_parameter(dataset.feature, context),
        )

    def get_instance(self, dataset_id, context: QueryContext) -> DatasetOutput:
        return self.assemble_expanded(self.get_entity(dataset_id, context), context)

    def get_all_condensed(self, context: QueryContext) -> List[DatasetOutput]:
        return [self.assemble_condensed(d, context) for d in self.get_all_entities(context)]

    def get_all_expanded(self, context: QueryContext) -> List[DatasetOutput]:
        return [self.assemble_expanded(d, context) for d in self.get_all_entities(context)]

    def get_or_insert_instance(self, candidate: Dataset, join_transaction: bool = False) -> Dataset:
        return get_or_insert_instance(self.session, candidate, join_transaction=join_transaction)
