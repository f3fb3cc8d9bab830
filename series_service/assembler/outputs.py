"""Transient output models produced by the assemblers. Never persisted."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Value(BaseModel):
    timestamp: datetime
    timestart: Optional[datetime] = None
    value: Any = None
    geometry: Optional[Dict[str, Any]] = None
    result_time: Optional[datetime] = None


class DatasetMetadata(BaseModel):
    value_before_timespan: Optional[Value] = None
    value_after_timespan: Optional[Value] = None
    reference_values: Dict[str, "Data"] = Field(default_factory=dict)


class Data(BaseModel):
    values: List[Value] = Field(default_factory=list)
    metadata: Optional[DatasetMetadata] = None

    def add_values(self, *values: Optional[Value]) -> None:
        self.values.extend(v for v in values if v is not None)


DatasetMetadata.model_rebuild()


class ReferenceValueOutput(BaseModel):
    label: Optional[str] = None
    reference_value_id: str
    last_value: Optional[Value] = None


class ParameterOutput(BaseModel):
    id: str
    label: Optional[str] = None


class DatasetParameters(BaseModel):
    service: Optional[ParameterOutput] = None
    offering: Optional[ParameterOutput] = None
    procedure: Optional[ParameterOutput] = None
    phenomenon: Optional[ParameterOutput] = None
    category: Optional[ParameterOutput] = None
    platform: Optional[ParameterOutput] = None
    feature: Optional[ParameterOutput] = None


class DatasetOutput(BaseModel):
    id: str
    label: str
    value_type: str
    observation_type: str
    unit: Optional[str] = None

    # expanded only
    first_value: Optional[Value] = None
    last_value: Optional[Value] = None
    reference_values: Optional[List[ReferenceValueOutput]] = None
    dataset_parameters: Optional[DatasetParameters] = None


class DatasetTypesMetadata(BaseModel):
    observation_type: str
    value_type: str
    dataset_count: int = 0
