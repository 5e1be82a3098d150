"""
SpeedWatch Aggregation Engine

Summary statistics and per-device rollups, recomputed from the record
store on every call. Nothing is cached: the record set only changes by
append or delete-all, and a stale rollup would be a wrong answer.
"""

from typing import List

from .recordStore import RecordStore
from .records import DeviceSummary, SummaryStats


class Aggregator:
    """Stateless rollups over a RecordStore"""

    def __init__(self, store: RecordStore):
        self.store = store

    def summary(self) -> SummaryStats:
        return self.store.summaryStats()

    def devices(self) -> List[DeviceSummary]:
        return self.store.deviceSummaries()
