"""
Reference-series expander.

A reference series with at most one point inside the requested window is
drawn as a flat line across the whole window: two synthetic values stamped
at the window start and end, carrying either the single in-window payload
or, with nothing in the window, the dataset's last known payload.
"""

from datetime import datetime
from typing import List

from series_service.assembler.base import ValueAssembler
from series_service.assembler.outputs import Value
from series_service.db.models import Dataset, Observation
from series_service.query.context import QueryContext
from series_service.utils.logger import logger


class ReferenceSeriesExpander:

    def __init__(self, assembler: ValueAssembler) -> None:
        self.assembler = assembler

    def expand(self, dataset: Dataset, context: QueryContext) -> List[Value]:
        observations = self.assembler.dao.get_all_for(dataset, context)
        if not observations:
            last = self.assembler.last_observation(dataset, context)
            if last is None:
                logger.debug(f"reference series '{dataset.id}' has no values to expand")
                return []
            return self.expand_to_interval(self.assembler.raw_value(last), dataset, context)
        if len(observations) == 1:
            return self.expand_to_interval(self.assembler.raw_value(observations[0]), dataset, context)
        return [
            self.assembler.assemble_value(observation, dataset, context)
            for observation in observations
        ]

    def expand_to_interval(self, raw_value, dataset: Dataset, context: QueryContext) -> List[Value]:
        timespan = context.timespan
        return [
            self.assembler.assemble_value(self._synthesize(raw_value, instant), dataset, context)
            for instant in (timespan.start, timespan.end)
        ]

    def _synthesize(self, raw_value, instant: datetime) -> Observation:
        # transient, never added to the session
        observation = Observation(sampling_time_start=instant, sampling_time_end=instant)
        self.assembler.set_raw_value(observation, raw_value)
        return observation
