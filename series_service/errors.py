"""
Error taxonomy shared by the query, store and assembly layers.

Missing observations are never errors: value-producing operations return
None for None input. Everything below is surfaced to the caller.
"""


class SeriesServiceError(Exception):
    """Base class for all errors raised by the series service."""

    pass


class InvalidFilterError(SeriesServiceError):
    """Malformed or unparseable filter/identifier input. Request is rejected."""

    pass


class StoreUnavailableError(SeriesServiceError):
    """Underlying store connection/transaction failure. Not retried here."""

    pass


class DeadlineExceededError(SeriesServiceError):
    """The request deadline elapsed while a store call was in flight."""

    pass


class NotFoundError(SeriesServiceError):
    """A requested dataset or reference entity id does not resolve."""

    def __init__(self, resource: str, identifier) -> None:
        super().__init__(f"{resource} with id '{identifier}' could not be found.")
        self.resource = resource
        self.identifier = identifier


class AssemblerNotFoundError(SeriesServiceError):
    """No value assembler registered for an (observation_type, value_type) pair."""

    pass
