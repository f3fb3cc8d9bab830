import math

from series_service.config.settings import settings


def _parse_sentinels(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [v.strip() for v in raw.split(",") if v.strip()]


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class NoDataPolicy:
    """
    Answers whether a raw payload equals the configured no-data sentinel.

    Sentinels come from the dataset's service; without any configured there,
    the global NO_DATA_VALUES setting applies.
    """

    def __init__(self, defaults: list[str] | None = None) -> None:
        self._defaults = defaults if defaults is not None else settings.no_data_values

    def sentinels_for(self, dataset) -> list[str]:
        service = dataset.service if dataset is not None else None
        configured = _parse_sentinels(service.no_data_values if service is not None else None)
        return configured or list(self._defaults)

    def is_no_data(self, raw_value, dataset) -> bool:
        if raw_value is None or isinstance(raw_value, (bool, dict, list)):
            return False
        sentinels = self.sentinels_for(dataset)
        if isinstance(raw_value, (int, float)):
            if isinstance(raw_value, float) and math.isnan(raw_value):
                return any(s.lower() == "nan" for s in sentinels)
            for sentinel in sentinels:
                number = _as_float(sentinel)
                if number is not None and not math.isnan(number) and number == raw_value:
                    return True
            return False
        return str(raw_value).strip() in sentinels


no_data_policy = NoDataPolicy()
