"""
SpeedWatch payload validation

Checks an inbound violation payload and normalizes it into a
ViolationInput. Pure: no I/O, no store access.

Wire payload: {device?, speed, limit, excess?, tier, lat?, lon?}

Every rule runs; all failures are reported together, in rule order.
Tier has two mutually exclusive errors:
- tier absent or falsy (None, 0, False)  -> "tier is required"
- tier present but not an enum value ("" included) -> "tier must be ..."

Numeric coercion accepts int/float (not bool) and numeric strings.
Non-numeric strings, empty strings, NaN and infinities are rejected.
"""

import math
from typing import Any, List, Mapping, Optional

from .records import Tier, TIER_VALUES, UNKNOWN_DEVICE, ViolationInput


class ValidationError(Exception):
    """Payload failed one or more validation rules"""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)


def coerceNumber(value: Any) -> Optional[float]:
    """
    Coerce a number or numeric string to float.

    Returns None when the value is not a finite number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def _isMissingTier(value: Any) -> bool:
    # The empty string counts as present-but-invalid, other falsy values as missing
    return value is None or (not value and value != "")


def _isBlank(value: Any) -> bool:
    # Form-encoded bodies send "" for unset optional inputs
    return value is None or value == ""


def validateViolation(payload: Any) -> ViolationInput:
    """
    Validate and normalize a violation payload.

    Args:
        payload: Decoded request body (mapping expected)

    Returns:
        ViolationInput with tier upper-cased and excess filled in

    Raises:
        ValidationError: With the ordered list of every failed rule
    """
    if not isinstance(payload, Mapping):
        raise ValidationError(["body must be a JSON object"])

    errors = []

    speed = coerceNumber(payload.get('speed'))
    if speed is None:
        errors.append("speed must be a number")

    limit = coerceNumber(payload.get('limit'))
    if limit is None:
        errors.append("limit must be a number")

    rawTier = payload.get('tier')
    tier = None
    if _isMissingTier(rawTier):
        errors.append("tier is required")
    else:
        normalized = str(rawTier).upper()
        if normalized in TIER_VALUES:
            tier = Tier(normalized)
        else:
            errors.append("tier must be MINOR, MODERATE or SEVERE")

    rawDevice = payload.get('device')
    device = UNKNOWN_DEVICE
    if isinstance(rawDevice, str):
        if rawDevice:
            device = rawDevice
    elif isinstance(rawDevice, (int, float)) and not isinstance(rawDevice, bool):
        device = str(rawDevice)
    elif rawDevice is not None:
        errors.append("device must be a string")

    excess = None
    if not _isBlank(payload.get('excess')):
        excess = coerceNumber(payload.get('excess'))
        if excess is None:
            errors.append("excess must be a number")

    coords = {}
    for key in ('lat', 'lon'):
        raw = payload.get(key)
        coords[key] = None
        if not _isBlank(raw):
            coords[key] = coerceNumber(raw)
            if coords[key] is None:
                errors.append(f"{key} must be a number")

    if errors:
        raise ValidationError(errors)

    if excess is None:
        excess = speed - limit
        # Finite inputs can still overflow (1e308 - -1e308)
        if not math.isfinite(excess):
            raise ValidationError(["excess must be a number"])

    return ViolationInput(
        device=device,
        speed=speed,
        speedLimit=limit,
        excess=excess,
        tier=tier,
        lat=coords['lat'],
        lon=coords['lon']
    )
