from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from series_service.api.deps import get_query_context
from series_service.assembler.dataset import DatasetAssembler
from series_service.assembler.outputs import Data, DatasetOutput, DatasetTypesMetadata
from series_service.db.connection import get_db_session
from series_service.query.context import QueryContext
from series_service.services.access_service import TimeseriesAccessService

router = APIRouter(prefix="/v2", tags=["v2"])


@router.get("/datasets", response_model=list[DatasetOutput], response_model_exclude_none=True)
def list_datasets(
    context: QueryContext = Depends(get_query_context),
    db: Session = Depends(get_db_session),
):
    assembler = DatasetAssembler(db)
    if context.expanded:
        return assembler.get_all_expanded(context)
    return assembler.get_all_condensed(context)


@router.get("/datasets/types", response_model=list[DatasetTypesMetadata])
def list_dataset_types(
    context: QueryContext = Depends(get_query_context),
    db: Session = Depends(get_db_session),
):
    return DatasetAssembler(db).get_dataset_types_metadata(context)


@router.get("/datasets/{dataset_id}", response_model=DatasetOutput)
def get_dataset(
    dataset_id: str,
    context: QueryContext = Depends(get_query_context),
    db: Session = Depends(get_db_session),
):
    return DatasetAssembler(db).get_instance(dataset_id, context)


@router.get("/datasets/{dataset_id}/data", response_model=Data)
def get_dataset_data(
    dataset_id: str,
    context: QueryContext = Depends(get_query_context),
    db: Session = Depends(get_db_session),
):
    return TimeseriesAccessService(db).get_data_for(dataset_id, context) or Data()


@router.get("/data", response_model=dict[str, Data])
def get_data(
    context: QueryContext = Depends(get_query_context),
    db: Session = Depends(get_db_session),
):
    return TimeseriesAccessService(db).get_data(context.datasets, context)
