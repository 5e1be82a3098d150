"""
SpeedWatch Query Service

Read paths: filtered listing, lookup by id, summary statistics and
per-device rollups. Read-only and stateless; every call is independent.

Query Flow:
  1. Build a ViolationFilter from the raw parameters (defaults and caps applied)
  2. RecordStore executes one parameterized, ordered SELECT
  3. Records are returned as wire dicts
"""

from typing import Any, Dict, List, Mapping

from .aggregation import Aggregator
from .queryBuilder import buildFilter
from .recordStore import NotFoundError, RecordStore

# SQLite INTEGER PRIMARY KEY range
_MAX_ID = 2 ** 63 - 1


class QueryService:
    """Read-side facade over the record store and aggregator"""

    def __init__(self, store: RecordStore):
        self.store = store
        self.aggregator = Aggregator(store)

    def listViolations(self, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        List violations newest-first.

        Args:
            params: Raw query parameters {tier?, device?, limit?}
        """
        violationFilter = buildFilter(params)
        return [record.toDict() for record in self.store.list(violationFilter)]

    def getViolation(self, rawId: Any) -> Dict[str, Any]:
        """
        Look up one violation by id (int or decimal string).

        Raises:
            NotFoundError: Unknown, malformed or out-of-range id
        """
        text = str(rawId).strip()
        # Plain ASCII digits only: no sign, no '_' separators
        if not (text.isascii() and text.isdigit()):
            raise NotFoundError(f"Invalid violation id: {rawId!r}")
        recordId = int(text)
        if recordId < 1 or recordId > _MAX_ID:
            raise NotFoundError(f"Violation {recordId} not found")
        return self.store.getById(recordId).toDict()

    def stats(self) -> Dict[str, Any]:
        """Summary statistics plus the device rollups"""
        return {
            'stats': self.aggregator.summary().toDict(),
            'devices': self.devices()
        }

    def devices(self) -> List[Dict[str, Any]]:
        return [summary.toDict() for summary in self.aggregator.devices()]
