"""Exceptions raised by the ingestion pipeline."""


class IngestError(Exception):
    """Base class for pipeline errors."""


class StoreUnavailableError(IngestError):
    """
    The event store could not complete a lookup or a bulk write.

    Fatal to the batch call. Per-operation conflicts are never raised,
    they are reported in the bulk write result instead.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message
