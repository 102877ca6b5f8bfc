"""
Exceptions raised by the alert ingestion pipeline.

Validation and per-alert failures are recovered inside a batch; the
remaining types abort the surrounding transaction and reach the caller.
"""

from __future__ import annotations

from typing import Iterable


class AlertValidationError(ValueError):
    """An alert failed identity validation and must be dropped."""

    def __init__(self, reasons: Iterable):
        self.reasons = list(reasons)
        super().__init__(
            "Invalid alert: " + ", ".join(getattr(r, "value", str(r)) for r in self.reasons)
        )


class AlertProcessingError(Exception):
    """Processing of a single alert failed after it passed validation."""

    def __init__(self, index: int, error: Exception):
        self.index = index
        self.error = error
        super().__init__(f"Alert #{index} failed: {error}")


class IngestionError(Exception):
    """The batch transaction failed; nothing from the batch was committed."""

    def __init__(self, message: str, processed_before_abort: int = 0):
        self.processed_before_abort = processed_before_abort
        super().__init__(message)


class IngestionTimeout(IngestionError):
    """The batch exceeded its deadline and was rolled back."""


class IncidentNotFound(LookupError):
    def __init__(self, incident_id: int):
        self.incident_id = incident_id
        super().__init__(f"Incident {incident_id} not found")


class IncidentAlreadyResolved(Exception):
    def __init__(self, incident_id: int):
        self.incident_id = incident_id
        super().__init__(f"Incident {incident_id} is already resolved")
