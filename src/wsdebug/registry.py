"""
Role registry: decides which side each connection plays and holds the live peer per role.
"""
import threading
from enum import Enum
from typing import Any, Dict, Optional

# The upstream connection is opened by the proxy itself, before listening.
PRIMARY_ID = 0


class Role(Enum):
    SERVER = 'server'
    CLIENT = 'client'

    @property
    def opposite(self) -> 'Role':
        return Role.CLIENT if self is Role.SERVER else Role.SERVER


class RoleRegistry:
    """Two peer slots behind one lock.

    The server slot is filled once and never cleared. The client slot follows
    a last-wins policy: every new inbound connection replaces the previous one.
    """

    def __init__(self, primary_id: int = PRIMARY_ID):
        self.primary_id = primary_id
        self._lock = threading.Lock()
        self._roles: Dict[int, Role] = {}
        self._peers: Dict[Role, Any] = {}
        self._owners: Dict[Role, int] = {}  # role -> identity currently in the slot

    def assign_role(self, identity: int, peer: Any) -> Role:
        """Assign a role to a freshly opened connection and record it as that role's peer.

        Calling again with the same identity returns the original role and
        leaves the slots untouched.
        """
        with self._lock:
            role = self._roles.get(identity)
            if role is not None:
                return role

            role = Role.SERVER if identity == self.primary_id else Role.CLIENT
            self._roles[identity] = role
            self._peers[role] = peer
            self._owners[role] = identity
            return role

    def peer_for(self, role: Role) -> Optional[Any]:
        with self._lock:
            return self._peers.get(role)

    def role_of(self, identity: int) -> Optional[Role]:
        with self._lock:
            return self._roles.get(identity)

    def release(self, identity: int) -> bool:
        """Drop a closed connection from its slot, unless it was already replaced.

        Returns True when a slot was actually cleared.
        """
        with self._lock:
            role = self._roles.get(identity)
            if role is not Role.CLIENT:
                return False
            if self._owners.get(role) != identity:
                return False
            del self._peers[role]
            del self._owners[role]
            return True
