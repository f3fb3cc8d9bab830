"""
Bulk data access: assembled series for a list of dataset ids.

Unknown dataset ids fail the whole request. A dataset whose value type has
no assembler is left out of the result instead.
"""

from typing import Dict, Iterable, Optional

import pandas as pd
from sqlalchemy.orm import Session

from series_service.assembler.dataset import DatasetAssembler
from series_service.assembler.outputs import Data
from series_service.assembler.registry import AssemblerRegistry, assembler_registry
from series_service.errors import AssemblerNotFoundError
from series_service.query.context import QueryContext
from series_service.utils.logger import logger


class TimeseriesAccessService:

    def __init__(self, session: Session, registry: AssemblerRegistry = assembler_registry) -> None:
        self.session = session
        self.registry = registry
        self.datasets = DatasetAssembler(session, registry)

    def get_data(self, dataset_ids: Optional[Iterable[str]], context: QueryContext) -> Dict[str, Data]:
        dataset_ids = list(dataset_ids if dataset_ids is not None else context.datasets)
        collection = {}
        for dataset_id in dataset_ids:
            data = self.get_data_for(dataset_id, context)
            if data is not None:
                collection[str(dataset_id)] = data
        logger.debug(f"Assembled {len(collection)}/{len(dataset_ids)} series for {context.timespan}")
        return collection

    def get_data_for(self, dataset_id, context: QueryContext) -> Optional[Data]:
        dataset = self.datasets.get_entity(dataset_id, context)
        try:
            assembler = self.registry.create_for(dataset, self.session)
        except AssemblerNotFoundError as e:
            logger.warning(f"No data for dataset '{dataset_id}': {e}")
            return None
        return assembler.get_data(dataset, context)


def to_frame(collection: Dict[str, Data]) -> pd.DataFrame:
    """Flatten assembled series into one long table (dataset_id, timestamp, value)."""
    rows = [
        {
            "dataset_id": dataset_id,
            "timestamp": value.timestamp,
            "value": value.value,
        }
        for dataset_id, data in collection.items()
        for value in data.values
    ]
    return pd.DataFrame(rows, columns=["dataset_id", "timestamp", "value"])
