"""
Append-only transcript: one plain-text file per role, one timestamped record per message.
"""
import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .protocol import Payload, render_payload
from .registry import Role

logger = logging.getLogger(__name__)

STREAM_FILES = {
    Role.SERVER: 'ws-debug.server.log',
    Role.CLIENT: 'ws-debug.client.log',
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    return moment.strftime('%Y-%m-%d %H:%M:%S.%f UTC')


@dataclass(frozen=True)
class TranscriptRecord:
    timestamp: datetime
    prefix: str
    body: str

    def format(self) -> str:
        if self.prefix:
            return f"{format_timestamp(self.timestamp)} {self.prefix} {self.body}\n"
        return f"{format_timestamp(self.timestamp)} {self.body}\n"


class TranscriptLogger:
    """Writes records for the two streams into `directory`.

    Files are opened in append mode for every record, so they are created on
    first use and never truncated. Write failures are reported as warnings and
    swallowed: the relay keeps forwarding even when the disk is full.
    """

    def __init__(self, directory: str = '.', pretty: bool = False,
                 clock: Callable[[], datetime] = utc_now):
        self.directory = directory
        self.pretty = pretty
        self.clock = clock
        self._locks: Dict[Role, threading.Lock] = {role: threading.Lock() for role in STREAM_FILES}
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create transcript directory %s: %s", directory, e)

    def path_for(self, role: Role) -> str:
        return os.path.join(self.directory, STREAM_FILES[role])

    def append(self, role: Role, prefix: str, message: Payload) -> Optional[TranscriptRecord]:
        """Record a forwarded message on the stream of the role it arrived from."""
        record = TranscriptRecord(self.clock(), prefix, render_payload(message, self.pretty))
        return record if self.write(role, record) else None

    async def append_async(self, role: Role, prefix: str, message: Payload) -> Optional[TranscriptRecord]:
        """Like append, but renders and writes in a worker thread."""
        return await asyncio.to_thread(self.append, role, prefix, message)

    def note(self, role: Role, text: str) -> Optional[TranscriptRecord]:
        """Record a lifecycle event (connections opening) without a prefix."""
        record = TranscriptRecord(self.clock(), '', text)
        return record if self.write(role, record) else None

    def write(self, role: Role, record: TranscriptRecord) -> bool:
        path = self.path_for(role)
        line = record.format()
        try:
            with self._locks[role]:
                with open(path, 'a', encoding='utf-8', errors='backslashreplace') as f:
                    f.write(line)
        except (OSError, ValueError) as e:
            logger.warning("Failed to write transcript entry to %s: %s", path, e)
            return False
        return True
