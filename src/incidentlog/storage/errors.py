"""Failure taxonomy for incident storage operations."""


class IncidentStoreError(Exception):
    """Base class for storage medium failures."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class WriteFailure(IncidentStoreError):
    """Raised when a mutation could not be durably committed; state was rolled back."""


class ReadFailure(IncidentStoreError):
    """Raised when a read could not be completed; no partial result is returned."""


class StoreClosedError(IncidentStoreError):
    """Raised when an operation is issued after the store was closed."""

    def __init__(self, operation: str):
        super().__init__(operation, "store is closed")


class ReadCancelled(Exception):
    """Raised inside a worker when the caller abandoned the read."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} cancelled by caller")
