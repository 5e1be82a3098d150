"""
SpeedWatch main entry point.

Opens the record store, starts the HTTP server, and runs until
interrupted. The store is created once here and injected everywhere.

Configuration: JSON file (--config), then environment overrides:
    PORT, HOST, ADMIN_KEY, DB_FILE, LOG_DIR, LOG_LEVEL

Usage:
    python -m speedwatch [--config path/to/config.json]

Property of Uncompromising Sensors LLC.
"""

import asyncio
import argparse
import os
import sys
import orjson
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from speedwatch.core.recordStore import RecordStore, StoreError
from speedwatch.server.server import SpeedWatchServer
from speedwatch.logging import getLogger, configureLogging


DEFAULT_CONFIG: Dict[str, Any] = {
    'host': '0.0.0.0',
    'port': 3000,
    'adminKey': 'changeme',
    'dbPath': 'violations.db',
    'logging': {'logDir': None, 'level': 'INFO'}
}

# Environment variable -> (config key, converter)
ENV_OVERRIDES = {
    'HOST': ('host', str),
    'PORT': ('port', int),
    'ADMIN_KEY': ('adminKey', str),
    'DB_FILE': ('dbPath', str),
}


def loadConfig(configPath: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    Defaults, overlaid by the JSON file (if given), overlaid by environment variables.

    Raises:
        ValueError: PORT is not an integer, or the file is not a JSON object
    """
    environ = os.environ if environ is None else environ

    config = dict(DEFAULT_CONFIG)
    config['logging'] = dict(DEFAULT_CONFIG['logging'])

    if configPath:
        with open(configPath, 'rb') as f:
            fileConfig = orjson.loads(f.read())
        if not isinstance(fileConfig, dict):
            raise ValueError(f"{configPath} must hold a JSON object")
        if not isinstance(fileConfig.get('logging', {}), dict):
            raise ValueError(f"{configPath}: 'logging' must be a JSON object")
        config['logging'].update(fileConfig.pop('logging', {}))
        config.update(fileConfig)

    for envName, (key, convert) in ENV_OVERRIDES.items():
        if environ.get(envName):
            try:
                config[key] = convert(environ[envName])
            except ValueError:
                raise ValueError(f"{envName} must be {convert.__name__}, got {environ[envName]!r}")

    if environ.get('LOG_DIR'):
        config['logging']['logDir'] = environ['LOG_DIR']
    if environ.get('LOG_LEVEL'):
        config['logging']['level'] = environ['LOG_LEVEL']

    return config


async def runServer(config: Dict[str, Any], store: RecordStore):
    """Serve until cancelled"""
    server = SpeedWatchServer(config, store)
    try:
        await server.start()
        while True:
            await asyncio.sleep(3600)
    finally:
        await server.stop()


def main():
    parser = argparse.ArgumentParser(description='SpeedWatch - speed violation telemetry server')
    parser.add_argument('--config', default=None, help='Path to JSON config file')
    args = parser.parse_args()

    if args.config and not Path(args.config).exists():
        print(f"Config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    try:
        config = loadConfig(args.config)
    except (ValueError, orjson.JSONDecodeError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logConfig = config['logging']
    configureLogging(logDir=logConfig.get('logDir'), level=logConfig.get('level', 'INFO'))
    log = getLogger()
    log.info("=" * 60)
    log.info("SpeedWatch - Speed Violation Server")
    log.info("=" * 60)
    log.info(f"[Main] Database: {config['dbPath']}")

    try:
        store = RecordStore(config['dbPath'])
    except StoreError as e:
        log.error(f"[Main] {e}")
        sys.exit(1)

    try:
        asyncio.run(runServer(config, store))
    except KeyboardInterrupt:
        log.info("[Main] Shutdown signal received")
    finally:
        store.close()
        log.info("[Main] SpeedWatch stopped")


if __name__ == '__main__':
    main()
