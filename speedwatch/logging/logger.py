"""
Hierarchical logger for SpeedWatch with automatic name detection.

Features:
- Logger name detected once from the caller (module + class)
- One rotating log file per top-level app, plus console output
- Structured fields passed as kwargs: log.info("Stored", id=3, device='D1')

Usage:
    from speedwatch.logging import getLogger

    class RecordStore:
        def __init__(self):
            self.log = getLogger()  # Auto: 'speedwatch.core.recordStore.RecordStore'

    log = getLogger()  # Module-level: 'speedwatch.main'

Property of Uncompromising Sensors LLC.
"""

import inspect, logging, logging.handlers, socket
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone as tz


_hostname = socket.gethostname()
_configured = False
_fileHandlers = {}  # logPath -> handler, shared by every logger of one app
_config = {
    'logDir': None,
    'maxBytes': 10_000_000,
    'backupCount': 5,
    'console': True,
    'level': logging.INFO,
    'utc': False
}

# LogRecord attributes that are not structured fields
_RESERVED = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName',
    'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'hostname', 'asctime', 'taskName'
}


def configureLogging(logDir: Optional[str] = None, maxBytes: int = 10_000_000,
                     backupCount: int = 5, console: bool = True,
                     level: str = 'INFO', utc: bool = False):
    """
    Configure global logging settings (call once at startup, before getLogger).

    Args:
        logDir: Directory for rotating log files (None = console only)
        maxBytes: Maximum size per log file before rotation
        backupCount: Rotated files kept per app
        console: Also log to stderr
        level: Minimum log level name
        utc: Use UTC timestamps instead of server-local time
    """
    global _configured

    _config.update({'logDir': logDir, 'maxBytes': maxBytes, 'backupCount': backupCount,
                    'console': console, 'level': getattr(logging, level.upper(), logging.INFO),
                    'utc': utc})

    if logDir:
        Path(logDir).mkdir(parents=True, exist_ok=True)
    _configured = True


def _autoDetectName() -> str:
    """Walk the call stack to the first frame outside this package. Returns e.g. 'speedwatch.core.ingest.Ingest'"""
    frame = inspect.currentframe()
    try:
        current = frame
        while current is not None:
            current = current.f_back
            if current is None:
                break

            module = inspect.getmodule(current)
            if module is None:
                continue

            moduleName = module.__name__
            if moduleName.startswith('speedwatch.logging'):
                continue
            if moduleName.startswith('importlib'):
                continue

            hierarchy = moduleName
            localVars = current.f_locals or {}
            if 'self' in localVars:
                hierarchy = f"{hierarchy}.{localVars['self'].__class__.__name__}"
            elif 'cls' in localVars and isinstance(localVars['cls'], type):
                hierarchy = f"{hierarchy}.{localVars['cls'].__name__}"
            return hierarchy

        return 'unknown'
    finally:
        del frame


class StructuredFormatter(logging.Formatter):
    """Format: timestamp - hostname - logger.name - level - message [field1=value1, field2=value2]"""

    def __init__(self, fmt=None, datefmt=None, utc=False):
        super().__init__(fmt, datefmt)
        self.utc = utc

    def formatTime(self, record, datefmt=None):
        if self.utc:
            ct = datetime.fromtimestamp(record.created, tz=tz.utc)
        else:
            ct = datetime.fromtimestamp(record.created)

        if datefmt:
            return ct.strftime(datefmt)
        return f"{ct.strftime('%Y-%m-%d %H:%M:%S')},{int(record.msecs):03d}"

    def format(self, record):
        record.hostname = _hostname

        fields = [f"{key}={value}" for key, value in record.__dict__.items()
                  if key not in _RESERVED and not key.startswith('_')]

        originalMsg = record.msg
        if fields:
            record.msg = f"{originalMsg} [{', '.join(fields)}]"
        try:
            return super().format(record)
        finally:
            # Other handlers must see the untouched message
            record.msg = originalMsg


def getLogger(name: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger, auto-detecting its name from the caller.

    Args:
        name: Explicit logger name (auto-detected if None)

    Returns:
        logging.Logger whose debug/info/warning/error/critical accept structured kwargs
    """
    if not _configured:
        configureLogging()

    if name is None:
        name = _autoDetectName()

    logger = logging.getLogger(name)
    logger.propagate = False

    if not logger.handlers:
        logger.setLevel(_config['level'])

        if _config['logDir']:
            appName = name.split('.')[0]
            logPath = str(Path(_config['logDir']) / f"{appName}.log")
            if logPath not in _fileHandlers:
                fileHandler = logging.handlers.RotatingFileHandler(
                    logPath,
                    maxBytes=_config['maxBytes'],
                    backupCount=_config['backupCount'],
                    encoding='utf-8'
                )
                fileHandler.setLevel(_config['level'])
                fileHandler.setFormatter(StructuredFormatter(
                    '%(asctime)s - %(hostname)s - %(name)s - %(levelname)s - %(message)s',
                    utc=_config['utc']
                ))
                _fileHandlers[logPath] = fileHandler
            logger.addHandler(_fileHandlers[logPath])

        if _config['console']:
            consoleHandler = logging.StreamHandler()
            consoleHandler.setLevel(_config['level'])
            consoleHandler.setFormatter(StructuredFormatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                utc=_config['utc']
            ))
            logger.addHandler(consoleHandler)

        if not logger.handlers:
            logger.addHandler(logging.NullHandler())

    return _wrapLogger(logger)


def _wrapLogger(logger: logging.Logger) -> logging.Logger:
    """
    Let the level methods take structured fields as kwargs.

    log.info("Message", id=1) instead of log.info("Message", extra={'id': 1})
    """
    if getattr(logger, '_isWrapped', False):
        return logger

    def wrap(original):
        def method(msg, *args, **kwargs):
            # exc_info and stack_info are logging parameters, not fields
            excInfo = kwargs.pop('exc_info', False)
            stackInfo = kwargs.pop('stack_info', False)
            original(msg, *args, extra=kwargs or None, exc_info=excInfo, stack_info=stackInfo)
        return method

    logger.debug = wrap(logger.debug)
    logger.info = wrap(logger.info)
    logger.warning = wrap(logger.warning)
    logger.error = wrap(logger.error)
    logger.critical = wrap(logger.critical)
    logger._isWrapped = True

    return logger
