# value assembly: per-value-type assemblers, reference expansion, dataset outputs

from series_service.assembler.base import ValueAssembler
from series_service.assembler.dataset import DatasetAssembler
from series_service.assembler.reference import ReferenceSeriesExpander
from series_service.assembler.registry import AssemblerRegistry, assembler_registry

__all__ = [
    "ValueAssembler",
    "DatasetAssembler",
    "ReferenceSeriesExpander",
    "AssemblerRegistry",
    "assembler_registry",
]
