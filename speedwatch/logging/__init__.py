"""
SpeedWatch logging - hierarchical logger with structured fields.

API:
    from speedwatch.logging import getLogger, configureLogging

    configureLogging(logDir='logs', level='INFO')  # once, at startup
    log = getLogger()
    log.info("Violation stored", id=12, device='ESP32-01')
"""

from .logger import getLogger, configureLogging

__all__ = ['getLogger', 'configureLogging']
