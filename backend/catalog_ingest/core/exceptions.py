"""Custom exception classes for the ingestion pipeline."""

from typing import Iterable


class CatalogIngestError(Exception):
    """Base exception for all catalog ingestion errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(CatalogIngestError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class PreconditionError(CatalogIngestError):
    """Raised when a brand cannot be synced at all (inactive, unconfigured)."""


class AdapterError(CatalogIngestError):
    """Raised when a source adapter cannot produce any records."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Adapter error for {source}: {message}")


class RemoteJobError(CatalogIngestError):
    """Raised when the remote scraping service rejects or loses a job."""


class RemoteJobTimeout(RemoteJobError):
    """Raised when a remote job does not reach a terminal state in time."""

    def __init__(self, run_id: str, max_wait: float):
        self.run_id = run_id
        self.max_wait = max_wait
        super().__init__(f"Remote run {run_id} did not finish within {max_wait:g}s")


class RecordError(CatalogIngestError):
    """Raised for a single raw record that cannot be turned into a product."""


class UnrecognizedFormatError(RecordError):
    """Raised when a raw record matches no known source shape."""


class MissingFieldError(RecordError):
    """Raised when a normalized record lacks required fields."""

    def __init__(self, fields: Iterable[str], name: str = ""):
        self.fields = list(fields)
        label = f" for '{name[:60]}'" if name else ""
        super().__init__(f"Missing required fields{label}: {', '.join(self.fields)}")


class StoreError(CatalogIngestError):
    """Raised when the catalog store fails a read or write."""


class UniqueViolationError(StoreError):
    """Raised when an insert hits the (brand_id, external_id) constraint."""
