"""
Relay core: per-connection sessions and forwarding to the opposite role.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, Optional

from .protocol import Payload
from .registry import Role, RoleRegistry
from .transcript import TranscriptLogger

logger = logging.getLogger(__name__)

SERVER_PREFIX = '[server]'


class RelayError(Exception):
    """Forwarding failed; the connection's message loop must stop."""


class PeerAbsentError(RelayError):
    """No connection holds the opposite role."""

    def __init__(self, role: Role):
        super().__init__(f"No {role.value} connected to forward to")
        self.role = role


class ForwardError(RelayError):
    """The opposite peer refused the message (typically already closing)."""


class ConnectionState(Enum):
    OPENING = 'opening'
    ACTIVE = 'active'
    CLOSED = 'closed'


def prefix_for(identity: int, role: Role) -> str:
    if role is Role.SERVER:
        return SERVER_PREFIX
    return f"[id: {identity}]"


@dataclass
class Session:
    identity: int
    peer: Any
    role: Optional[Role] = None
    prefix: str = ''
    state: ConnectionState = ConnectionState.OPENING
    forwarded: int = 0


class Relay:
    """Routes messages between the single upstream and the current downstream.

    Every message goes to the role opposite to the one it arrived on, so a
    message can never travel back to its own side.
    """

    def __init__(self, registry: RoleRegistry, transcript: Optional[TranscriptLogger] = None,
                 server_label: str = ''):
        self.registry = registry
        self.transcript = transcript
        self.server_label = server_label

    def open(self, identity: int, peer: Any, local_address: Any = None,
             remote_address: Any = None) -> Session:
        """Opening -> Active: assign the role and publish the peer in its slot."""
        session = Session(identity, peer)
        logger.debug("Connection opened: we are %s, they are %s", local_address, remote_address)
        if remote_address is None:
            logger.warning("Connection with unknown address opened")

        session.role = self.registry.assign_role(identity, peer)
        session.prefix = prefix_for(identity, session.role)

        if session.role is Role.SERVER:
            logger.debug("Creating handler for the server")
            note = f"Proxy connected to the server at {self.server_label}"
        else:
            logger.debug("Creating handler for a client")
            note = f"Client connected to the proxy with id {identity}"
        if self.transcript is not None:
            self.transcript.note(session.role, note)

        session.state = ConnectionState.ACTIVE
        return session

    async def forward(self, session: Session, message: Payload) -> None:
        if session.state is not ConnectionState.ACTIVE:
            raise RelayError(f"Connection {session.identity} is {session.state.value}")

        target = session.role.opposite
        if target is Role.CLIENT:
            logger.debug("Redirecting message from server to client")
        else:
            logger.debug("Redirecting message from client to server")

        peer = self.registry.peer_for(target)
        if peer is None:
            raise PeerAbsentError(target)

        try:
            await peer.send(message)
        except Exception as e:
            raise ForwardError(f"Failed to send to {target.value}: {e}") from e
        session.forwarded += 1

        if self.transcript is not None:
            await self.transcript.append_async(session.role, session.prefix, message)

    async def run_session(self, session: Session, messages: AsyncIterable[Payload]) -> None:
        """Forward every message of a connection until it ends or forwarding fails."""
        async for message in messages:
            await self.forward(session, message)

    def close(self, session: Session, code: Any = None, reason: str = '') -> None:
        """Active -> Closed: free the client slot if this connection still owns it."""
        if session.state is ConnectionState.CLOSED:
            return
        logger.debug("Connection closed: code=%s, reason=\"%s\"", code, reason)
        session.state = ConnectionState.CLOSED
        if self.registry.release(session.identity):
            logger.debug("Client %s left, no client connected", session.identity)
