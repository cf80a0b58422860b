"""
Revocation Registry
===================

Append-only set of revoked credential identifiers. Once an identifier is in
the set it stays revoked; there is no un-revoke.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import MissingIdentifier
from .storage import InMemoryStore, RecordStore

logger = logging.getLogger("RevocationRegistry")


@dataclass(frozen=True)
class RevocationEntry:
    id: str  # credential identifier
    ts: int = field(default_factory=lambda: int(time.time() * 1000))  # epoch ms

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "ts": self.ts}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RevocationEntry":
        return cls(id=data["id"], ts=data.get("ts", 0))


@dataclass(frozen=True)
class RevocationAck:
    credential_id: str
    already_revoked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"revoked": self.credential_id}


class RevocationRegistry:
    """
    Revokes credentials and answers revocation queries

    Every ``is_revoked`` call reads the store; nothing is cached, so two
    verifications of the same credential see the registry as it was at call
    time.
    """

    def __init__(self, store: Optional[RecordStore[RevocationEntry]] = None):
        self.store = store if store is not None else InMemoryStore()
        self._lock = threading.Lock()

    def revoke(self, credential_id: Optional[str]) -> RevocationAck:
        """
        Revoke a credential

        Args:
            credential_id: identifier of the credential to revoke

        Returns:
            RevocationAck, also when the credential was already revoked

        Raises:
            MissingIdentifier: if no identifier is given
        """
        if not credential_id or not isinstance(credential_id, str):
            raise MissingIdentifier("missing id")

        # check-then-append must not interleave
        with self._lock:
            if self.store.contains(credential_id):
                logger.info(f"Credential already revoked: {credential_id}")
                return RevocationAck(credential_id, already_revoked=True)

            self.store.append(RevocationEntry(id=credential_id))

        logger.info(f"Credential revoked: {credential_id}")
        return RevocationAck(credential_id)

    def is_revoked(self, credential_id: Optional[str]) -> bool:
        """Check if credential is revoked"""
        if not credential_id:
            return False
        return self.store.contains(credential_id)

    def list_entries(self) -> List[RevocationEntry]:
        """Revocation entries, most recent first"""
        return self.store.list()
