"""In-process approvable store.

Every write is a compare-and-swap under a lock: a save succeeds only when the
stored record still has the status and version the writer read.
"""

import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from procurement.core.approval.records import ApprovableRecord
from procurement.core.approval.states import Status
from procurement.core.errors import ConflictError, NotFoundError


class InMemoryApprovableStore:
    """Dictionary-backed store for tests and single-process use."""

    def __init__(self):
        self._records: Dict[str, ApprovableRecord] = {}
        self._lock = threading.Lock()

    def load_approvable(self, record_id: str) -> ApprovableRecord:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    def save_approvable(
        self,
        record: ApprovableRecord,
        expected_prior_status: Optional[Status],
    ) -> ApprovableRecord:
        """
        Insert or conditionally replace a record.

        Args:
            record: Record to persist, carrying the version it was read at
            expected_prior_status: Status the stored record must still have,
                or None to insert a new record

        Returns:
            The stored record with its version incremented

        Raises:
            ConflictError: If the stored record changed since it was read, or
                an insert collides with an existing id
            NotFoundError: If an update targets a missing record
        """
        with self._lock:
            current = self._records.get(record.id)

            if expected_prior_status is None:
                if current is not None:
                    raise ConflictError(record.id, None, current.status.value)
            else:
                if current is None:
                    raise NotFoundError(record.id)
                if current.status != expected_prior_status or current.version != record.version:
                    raise ConflictError(
                        record.id,
                        expected_prior_status.value,
                        current.status.value,
                    )

            stored = replace(record, version=record.version + 1)
            self._records[record.id] = stored
            return stored

    def query_approvables(self, statuses: Iterable[Status]) -> List[ApprovableRecord]:
        wanted = {Status(s) for s in statuses}
        with self._lock:
            matches = [r for r in self._records.values() if r.status in wanted]
        return sorted(matches, key=lambda r: r.created_at)
