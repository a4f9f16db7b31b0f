"""
WebSocket debug proxy: one upstream connection, one (latest) downstream client, every message relayed and logged.
"""
import asyncio
import itertools
import logging
import sys
from typing import List, Optional

import websockets
from websockets.exceptions import ConnectionClosedError, InvalidHandshake, InvalidURI
from websockets.frames import CloseCode

from .config import HELP, ConfigError, HelpRequested, ProxyConfig, parse_args
from .registry import PRIMARY_ID, RoleRegistry
from .relay import Relay, RelayError, Session
from .transcript import TranscriptLogger

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class UpstreamClosed(Exception):
    """The connection to the server ended; the proxy has nothing left to do."""


class RelayServer:
    def __init__(self, server_url: str, host: str = '127.0.0.1', port: int = 0,
                 transcript: Optional[TranscriptLogger] = None):
        self.server_url = server_url
        self.host = host
        self.port = port
        self.registry = RoleRegistry()
        self.relay = Relay(self.registry, transcript, server_url)
        self._ids = itertools.count(PRIMARY_ID)
        self.upstream = None
        self.server = None
        self._upstream_task: Optional[asyncio.Task] = None

    @property
    def bound_port(self) -> int:
        """Port actually listened on (differs from `port` when 0 was requested)."""
        if self.server is None:
            return self.port
        return self.server.sockets[0].getsockname()[1]

    def open_session(self, ws) -> Session:
        return self.relay.open(next(self._ids), ws, ws.local_address, ws.remote_address)

    async def pump(self, session: Session, ws):
        """Relay one connection's messages until it closes or forwarding fails."""
        try:
            await self.relay.run_session(session, ws)
        except RelayError as e:
            logger.error("Connection %s (%s): %s", session.identity, session.role.value, e)
            await ws.close(CloseCode.INTERNAL_ERROR, 'relay error')
        except ConnectionClosedError as e:
            logger.warning("Connection %s (%s) dropped: %s", session.identity, session.role.value, e)
        except Exception:
            logger.exception("Handler error for connection %s (%s)", session.identity, session.role.value)
            await ws.close(CloseCode.INTERNAL_ERROR, 'relay error')
        finally:
            self.relay.close(session, ws.close_code, ws.close_reason or '')

    async def handle_client(self, ws):
        """Handle a new inbound connection."""
        session = self.open_session(ws)
        await self.pump(session, ws)

    async def connect_upstream(self):
        self.upstream = await websockets.connect(self.server_url, max_size=None)
        session = self.open_session(self.upstream)
        self._upstream_task = asyncio.create_task(self.pump(session, self.upstream))

    async def start(self):
        """Connect to the server first, then start accepting clients."""
        await self.connect_upstream()
        try:
            self.server = await websockets.serve(self.handle_client, self.host, self.port, max_size=None)
        except OSError:
            await self.stop()
            raise
        logger.info("Listening port %s, redirecting messages to %s", self.bound_port, self.server_url)

    async def wait_closed(self):
        """Block until the upstream connection is gone."""
        if self._upstream_task is not None:
            await self._upstream_task

    async def stop(self):
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
        if self.upstream is not None:
            await self.upstream.close()
        if self._upstream_task is not None:
            await self._upstream_task

    async def serve_forever(self):
        await self.start()
        try:
            await self.wait_closed()
        finally:
            await self.stop()
        raise UpstreamClosed(f"Connection to {self.server_url} closed")


async def run(config: ProxyConfig) -> int:
    """Main proxy entry point; returns the process exit status."""
    transcript = None
    if config.transcript:
        transcript = TranscriptLogger(config.log_dir, config.pretty)

    proxy = RelayServer(config.server_url, config.bind_host, config.port, transcript)
    try:
        await proxy.serve_forever()
    except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
        logger.error("Error: %s", e)
        print(f"Failed to relay {config.server_url} on port {config.port}: {e}")
        return 1
    except UpstreamClosed as e:
        logger.error("%s, shutting down", e)
        return 1
    return 0


def main(argv: Optional[List[str]] = None):
    """Entry point for the proxy."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        config = parse_args(argv)
    except HelpRequested:
        print(HELP)
        sys.exit(0)
    except ConfigError as e:
        print(e)
        sys.exit(1)

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    sys.exit(asyncio.run(run(config)))


if __name__ == '__main__':
    main()
