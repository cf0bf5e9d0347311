"""
chronokv main entry point.

Builds the configured storage backend, wraps it in the engine, serves HTTP
until SIGINT/SIGTERM, then shuts down in order:
    stop listener (in-flight requests finish) -> engine.close() (once)

Usage:
    python -m chronokv.main [--config path/to/config.json] [--backend memory] [--port 3000]
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional

from chronokv import __version__
from chronokv.config import loadConfig, validateConfig
from chronokv.core.backends import StorageError, createBackend
from chronokv.core.engine import VersionedStore
from chronokv.logging import configureLogging, getLogger
from chronokv.server.server import ChronoServer


def _installSignalHandlers(stopEvent: asyncio.Event):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stopEvent.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still ends asyncio.run()
            pass


async def runServer(config: dict, stopEvent: Optional[asyncio.Event] = None):
    """Run until stopEvent is set (or a shutdown signal arrives)"""
    log = getLogger()
    backend = createBackend(config['backend'])
    engine = VersionedStore(backend)
    server = ChronoServer(engine, config['server'])

    if stopEvent is None:
        stopEvent = asyncio.Event()
        _installSignalHandlers(stopEvent)

    try:
        await server.start()
        await stopEvent.wait()
        log.info("Shutdown signal received")
    finally:
        await server.stop()
        engine.close()
        log.info("Process stopped")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='chronokv - versioned key-value store')
    parser.add_argument('--config', default='chronokv/config.json', help='Path to config file')
    parser.add_argument('--backend', choices=('sqlite', 'mongodb', 'memory'), help='Override backend type')
    parser.add_argument('--port', type=int, help='Override listen port')
    args = parser.parse_args(argv)

    try:
        config = loadConfig(args.config)
        if args.backend:
            config['backend']['type'] = args.backend
        if args.port:
            config['server']['port'] = args.port
        validateConfig(config)

        logConfig = config['logging']
        configureLogging(
            logDir=logConfig.get('logDir'),
            maxBytes=logConfig.get('maxBytes', 10_000_000),
            backupCount=logConfig.get('backupCount', 5),
            console=logConfig.get('console', True),
            level=logConfig.get('level', 'INFO'),
            utc=logConfig.get('utc', False)
        )
    except ValueError as e:
        # ConfigError, or an unknown log level
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    log = getLogger()
    log.info("chronokv starting", version=__version__, backendType=config['backend']['type'])

    try:
        asyncio.run(runServer(config))
    except KeyboardInterrupt:
        log.info("Interrupted")
    except StorageError as e:
        log.error("Storage backend failed to start", errorMsg=str(e))
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
