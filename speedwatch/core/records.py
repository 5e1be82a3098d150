"""
SpeedWatch record types.

ViolationRecord is the only persisted entity. SummaryStats and
DeviceSummary are derived from it on every read and never stored.

Wire names use camelCase (speedLimit, receivedAt) to match the JSON API.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class Tier(str, Enum):
    """Severity classification of a violation"""
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"


TIER_VALUES = tuple(t.value for t in Tier)

# Stored when the device does not identify itself
UNKNOWN_DEVICE = "UNKNOWN"


@dataclass(frozen=True)
class ViolationInput:
    """Validated, normalized violation ready for insert (no server-assigned fields yet)"""
    device: str
    speed: float
    speedLimit: float
    excess: float
    tier: Tier
    lat: Optional[float] = None
    lon: Optional[float] = None


@dataclass(frozen=True)
class ViolationRecord:
    """Stored violation with its store-assigned id and receivedAt"""
    id: int
    device: str
    speed: float
    speedLimit: float
    excess: float
    tier: str
    lat: Optional[float]
    lon: Optional[float]
    receivedAt: str

    def toDict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def fromRow(cls, row) -> 'ViolationRecord':
        """Create from a sqlite3.Row selected with the violations column list"""
        return cls(**{k: row[k] for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class DeviceSummary:
    device: str
    totalViolations: int
    maxSpeed: Optional[float]
    lastSeen: str

    def toDict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SummaryStats:
    """
    Process-wide rollup over the full record set.

    avgExcess and maxSpeed are rounded to 2 decimals and None on an empty store.
    Tier counts are never None, so total == severeCount + moderateCount + minorCount.
    """
    total: int
    distinctDeviceCount: int
    avgExcess: Optional[float]
    maxSpeed: Optional[float]
    severeCount: int
    moderateCount: int
    minorCount: int

    def toDict(self) -> Dict[str, Any]:
        return asdict(self)
