"""
SpeedWatch Ingest Pipeline

The only write path into the record store.

Ingest Flow:
  1. Validate and normalize the payload (ValidationError, nothing written)
  2. Insert into the record store (id and receivedAt assigned there)
  3. On StoreError: log the detail, raise a generic IngestError

Nothing is retried; devices re-send on failure.
"""

from typing import Any

from speedwatch.logging import getLogger

from .recordStore import RecordStore, StoreError
from .validator import validateViolation


class IngestError(Exception):
    """Persistence failure, safe to show to a client"""
    pass


class Ingest:
    """
    Ingest pipeline for violation events.

    Validation failures propagate as ValidationError with the full error list.
    Store failures never leak their text past this class.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self.log = getLogger()

    def submit(self, payload: Any) -> int:
        """
        Validate and store one violation payload.

        Returns:
            Store-assigned record id

        Raises:
            ValidationError: Payload rejected (no store mutation)
            IngestError: Store failure (detail logged, not exposed)
        """
        record = validateViolation(payload)

        try:
            recordId = self.store.insert(record)
        except StoreError as e:
            self.log.error(f"[Ingest] Store error: {e}", device=record.device)
            raise IngestError("Database error") from e

        self.log.info(f"[Ingest] #{recordId} | {record.device} | {record.tier.value} | "
                      f"{record.speed:g} km/h (limit {record.speedLimit:g})")
        return recordId

    def clearAll(self) -> int:
        """
        Delete every stored violation. Caller is responsible for authorization.

        Returns:
            Number of records removed

        Raises:
            IngestError: Store failure
        """
        try:
            deleted = self.store.deleteAll()
        except StoreError as e:
            self.log.error(f"[Ingest] Delete-all failed: {e}")
            raise IngestError("Database error") from e

        self.log.warning(f"[Ingest] Violations table cleared ({deleted} records)")
        return deleted
