"""
SpeedWatch Query Builder

Turns raw query-string parameters into a ViolationFilter, and a
ViolationFilter into a parameterized WHERE clause.

Rules:
- limit: leading integer, default 200 when absent/unparsable/negative, capped at 1000.
  0 is honored and selects nothing.
- tier: upper-cased exact match, not checked against the Tier enum
  (an unknown tier simply matches zero records)
- device: exact, case-sensitive match, passed through untouched
- Present filters combine with AND
- Filter values only ever travel as bound parameters
"""

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple


DEFAULT_LIMIT = 200
MAX_LIMIT = 1000

_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)


@dataclass(frozen=True)
class ViolationFilter:
    """Structured filter consumed by RecordStore.list()"""
    tier: Optional[str] = None
    device: Optional[str] = None
    limit: int = DEFAULT_LIMIT

    def whereClause(self) -> Tuple[str, List[Any]]:
        """
        Build the WHERE clause for this filter.

        Returns:
            (sql, params) where sql is '' or ' WHERE col = ? AND ...'
        """
        clauses = []
        params: List[Any] = []
        if self.tier is not None:
            clauses.append("tier = ?")
            params.append(self.tier)
        if self.device is not None:
            clauses.append("device = ?")
            params.append(self.device)

        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params


def parseLimit(value: Any) -> int:
    """
    Parse the limit parameter, applying default and cap.

    Reads the leading integer, so "12.5" is 12 and "50abc" is 50.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_LIMIT
    match = _LEADING_INT.match(str(value))
    if not match:
        return DEFAULT_LIMIT
    limit = int(match.group(1))
    if limit < 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def buildFilter(params: Mapping[str, Any]) -> ViolationFilter:
    """
    Build a ViolationFilter from query parameters {tier?, device?, limit?}.

    Empty-string tier/device are treated as absent.
    """
    tier = params.get('tier')
    device = params.get('device')

    return ViolationFilter(
        tier=str(tier).upper() if tier else None,
        device=str(device) if device else None,
        limit=parseLimit(params.get('limit'))
    )
