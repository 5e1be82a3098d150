"""
SpeedWatch - speed-violation telemetry server.

Devices POST violation events; the JSON API serves filtered history,
per-device rollups and summary statistics.
"""

__version__ = "1.0.0"
