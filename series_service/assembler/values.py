"""Concrete value assemblers, one per value type of simple observations."""

from series_service.assembler.base import ValueAssembler
from series_service.db.models import VALUE_COLUMN_BY_TYPE


class QuantityValueAssembler(ValueAssembler):
    value_type = "quantity"
    value_column = VALUE_COLUMN_BY_TYPE["quantity"]

    def convert(self, raw, dataset):
        value = float(raw)
        if dataset.number_of_decimals is not None:
            return round(value, dataset.number_of_decimals)
        return value


class CountValueAssembler(ValueAssembler):
    value_type = "count"
    value_column = VALUE_COLUMN_BY_TYPE["count"]

    def convert(self, raw, dataset):
        return int(raw)


class TextValueAssembler(ValueAssembler):
    value_type = "text"
    value_column = VALUE_COLUMN_BY_TYPE["text"]


class BooleanValueAssembler(ValueAssembler):
    value_type = "boolean"
    value_column = VALUE_COLUMN_BY_TYPE["boolean"]

    def convert(self, raw, dataset):
        return bool(raw)


class RecordValueAssembler(ValueAssembler):
    """Structured records: a mapping of field name to value."""

    value_type = "record"
    value_column = VALUE_COLUMN_BY_TYPE["record"]

    def convert(self, raw, dataset):
        return dict(raw)
