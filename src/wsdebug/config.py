"""
Command line and environment configuration.
"""
import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from websockets.exceptions import InvalidURI
from websockets.uri import parse_uri

HELP = (
    "This is a debug proxy, which dumps all messages passing through specified port.\n"
    "\n"
    "Syntax: ws-debug <server-url> <proxy-port> [--pretty-jsons] [--no-transcript]\n"
    "                 [--log-dir=<dir>] [--bind=<host>]\n"
    "\n"
    "The only two parameters are a port number to listen and a websocket url\n"
    "to redirect messages to. If a message comes from the <server-url>, it is directed\n"
    "to the last client connected to the debug proxy. Looping is forbidden.\n"
    "\n"
    "You can provide --pretty-jsons flag to pretty print jsons when they are encountered.\n"
    "The program will create a separate file for server and client\n"
    "(ws-debug.server.log and ws-debug.client.log), unless --no-transcript is given.\n"
    "\n"
    "Set WS_DEBUG_LOG=debug|info|warning|error to control diagnostic output."
)

DEFAULT_BIND_HOST = '127.0.0.1'
LOG_LEVEL_ENV = 'WS_DEBUG_LOG'


class ConfigError(ValueError):
    """Invalid command line; the message is shown to the user as-is."""


class HelpRequested(Exception):
    """--help was given, or the positional arguments do not fit."""


@dataclass
class ProxyConfig:
    server_url: str
    port: int
    pretty: bool = False
    transcript: bool = True
    log_dir: str = '.'
    bind_host: str = DEFAULT_BIND_HOST
    log_level: int = logging.WARNING


def parse_url(raw: str) -> str:
    try:
        parse_uri(raw)
    except InvalidURI as e:
        raise ConfigError(f"Websocket URL {raw} is invalid") from e
    return raw


def parse_port(raw: str) -> int:
    if not raw.isascii() or not raw.isdigit() or int(raw) > 65535:
        raise ConfigError(f"Port number {raw} is invalid")
    return int(raw)


def parse_log_level(raw: Optional[str]) -> int:
    if not raw:
        return logging.WARNING
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        raise ConfigError(f"Log level {raw} is invalid")
    return level


def parse_args(argv: List[str], environ: Optional[Mapping[str, str]] = None) -> ProxyConfig:
    """Build a ProxyConfig from arguments (without the program name).

    --help wins over everything else, so it is checked before any parsing.
    """
    if environ is None:
        environ = os.environ
    if '--help' in argv:
        raise HelpRequested()

    options = {'pretty': False, 'transcript': True, 'log_dir': '.', 'bind_host': DEFAULT_BIND_HOST}
    positional = []
    for arg in argv:
        if arg == '--pretty-jsons':
            options['pretty'] = True
        elif arg == '--no-transcript':
            options['transcript'] = False
        elif arg.startswith('--log-dir='):
            options['log_dir'] = arg.split('=', 1)[1] or '.'
        elif arg.startswith('--bind='):
            options['bind_host'] = arg.split('=', 1)[1] or DEFAULT_BIND_HOST
        elif arg.startswith('--'):
            raise HelpRequested()
        else:
            positional.append(arg)

    if len(positional) != 2:
        raise HelpRequested()

    server_url = parse_url(positional[0])
    port = parse_port(positional[1])
    return ProxyConfig(
        server_url=server_url,
        port=port,
        log_level=parse_log_level(environ.get(LOG_LEVEL_ENV)),
        **options,
    )
