"""
Value assembler contract.

One assembler per (observation_type, value_type) pair turns raw observation
rows into typed output values. Subclasses only name the payload column and,
where needed, convert the raw payload; timestamps, geometry, no-data
suppression, first/last values and reference series are handled here.
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from series_service.assembler.outputs import Data, DatasetMetadata, ReferenceValueOutput, Value
from series_service.db.models import Dataset, Observation
from series_service.errors import AssemblerNotFoundError
from series_service.query.context import QueryContext
from series_service.services.labels import label_for
from series_service.services.no_data import NoDataPolicy, no_data_policy
from series_service.store.data_dao import DataDao
from series_service.utils.logger import logger


class ValueAssembler:
    """Contract for all per-value-type assemblers."""

    observation_type = "simple"
    value_type: str = ""
    value_column: str = ""

    def __init__(self, session: Session, no_data: Optional[NoDataPolicy] = None) -> None:
        self.session = session
        self.no_data = no_data or no_data_policy
        self.dao = DataDao(session, self.value_type)

    def raw_value(self, observation: Observation):
        return getattr(observation, self.value_column)

    def set_raw_value(self, observation: Observation, raw) -> None:
        setattr(observation, self.value_column, raw)

    def convert(self, raw, dataset: Dataset):
        """Raw payload -> output payload. Identity unless a type needs more."""
        return raw

    def get_data_value(self, observation: Observation, dataset: Dataset):
        raw = self.raw_value(observation)
        if raw is None or self.no_data.is_no_data(raw, dataset):
            return None
        return self.convert(raw, dataset)

    def prepare_value(self, observation: Observation, context: QueryContext) -> Value:
        geometry = None
        if observation.has_geometry:
            geometry = {"type": "Point", "coordinates": [observation.longitude, observation.latitude]}
        return Value(
            timestamp=observation.sampling_time_end,
            timestart=observation.sampling_time_start if context.show_time_intervals else None,
            geometry=geometry,
            result_time=observation.result_time if context.show_result_times else None,
        )

    def assemble_value(
        self, observation: Optional[Observation], dataset: Dataset, context: QueryContext
    ) -> Optional[Value]:
        if observation is None:
            # do not fail on missing observations
            return None
        value = self.prepare_value(observation, context)
        value.value = self.get_data_value(observation, dataset)
        return value

    def assemble_data_values(self, dataset: Dataset, context: QueryContext) -> Data:
        result = Data()
        for observation in self.dao.get_all_for(dataset, context):
            result.add_values(self.assemble_value(observation, dataset, context))
        return result

    def assemble_series(self, dataset: Dataset, context: QueryContext) -> Data:
        """Window values plus boundary values and reference series."""
        result = self.assemble_data_values(dataset, context)

        previous_value = self.dao.get_closest_before(dataset, context.timespan.start, context)
        next_value = self.dao.get_closest_after(dataset, context.timespan.end, context)
        metadata = DatasetMetadata(
            value_before_timespan=self.assemble_value(previous_value, dataset, context),
            value_after_timespan=self.assemble_value(next_value, dataset, context),
        )
        if dataset.reference_values:
            metadata.reference_values = self.assemble_reference_series(dataset.reference_values, context)
        result.metadata = metadata
        return result

    def get_data(self, dataset: Dataset, context: QueryContext) -> Data:
        if context.expanded:
            return self.assemble_series(dataset, context)
        return self.assemble_data_values(dataset, context)

    def first_observation(self, dataset: Dataset, context: QueryContext) -> Optional[Observation]:
        observation = dataset.first_observation
        if observation is not None and not observation.deleted:
            return observation
        return self.dao.get_value_via_timestart(dataset, context)

    def last_observation(self, dataset: Dataset, context: QueryContext) -> Optional[Observation]:
        observation = dataset.last_observation
        if observation is not None and not observation.deleted:
            return observation
        return self.dao.get_value_via_timeend(dataset, context)

    def get_first_value(self, dataset: Dataset, context: QueryContext) -> Optional[Value]:
        return self.assemble_value(self.first_observation(dataset, context), dataset, context)

    def get_last_value(self, dataset: Dataset, context: QueryContext) -> Optional[Value]:
        return self.assemble_value(self.last_observation(dataset, context), dataset, context)

    def assemble_reference_series(
        self, references: List[Dataset], context: QueryContext
    ) -> Dict[str, Data]:
        from series_service.assembler.reference import ReferenceSeriesExpander
        from series_service.assembler.registry import assembler_registry

        reference_series = {}
        for reference in references:
            if not reference.published:
                continue
            try:
                assembler = assembler_registry.create_for(reference, self.session, self.no_data)
            except AssemblerNotFoundError as e:
                logger.warning(f"Skipping reference series '{reference.id}': {e}")
                continue
            values = ReferenceSeriesExpander(assembler).expand(reference, context)
            reference_series[str(reference.id)] = Data(values=values)
        return reference_series

    def get_reference_values(self, dataset: Dataset, context: QueryContext) -> List[ReferenceValueOutput]:
        from series_service.assembler.registry import assembler_registry

        outputs = []
        for reference in dataset.reference_values or []:
            try:
                assembler = assembler_registry.create_for(reference, self.session, self.no_data)
            except AssemblerNotFoundError as e:
                logger.warning(f"Skipping reference value '{reference.id}': {e}")
                continue
            outputs.append(
                ReferenceValueOutput(
                    label=label_for(reference.procedure, context.locale),
                    reference_value_id=str(reference.id),
                    last_value=assembler.get_last_value(reference, context),
                )
            )
        return outputs
