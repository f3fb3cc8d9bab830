# ingestion side of the core: dataset metadata merge and observation loading

from series_service.ingestion.merger import get_or_insert_instance, merge_into
from series_service.ingestion.loader import ingest_observations

__all__ = ["get_or_insert_instance", "merge_into", "ingest_observations"]
