"""
DID Manager - DID Documents and an in-memory DID registry

DID Format: did:<method>:<ethereum address>

Reference: https://www.w3.org/TR/did-core/
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .key_manager import IssuerKey

_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def address_from_did(did: str) -> Optional[str]:
    """
    Extract the address suffix of ``did:<method>:<address>``

    Network-qualified DIDs (``did:ethr:sepolia:0x...``) are handled, the
    address is always the last segment.
    """
    if not isinstance(did, str) or not did.startswith("did:"):
        return None
    parts = did.split("#")[0].split(":")
    if len(parts) < 3 or not parts[-1]:
        return None
    return parts[-1]


def is_address(value: str) -> bool:
    return bool(value) and bool(_ADDRESS.fullmatch(value))


@dataclass
class DIDDocument:
    """
    W3C DID Document (reduced to what verification needs)

    Reference: https://www.w3.org/TR/did-core/#core-properties
    """
    id: str  # The DID
    controller: Optional[str] = None
    verification_method: List[Dict] = field(default_factory=list)
    authentication: List[str] = field(default_factory=list)
    assertion_method: List[str] = field(default_factory=list)
    created: str = ""
    updated: str = ""
    deactivated: bool = False

    def __post_init__(self):
        if not self.controller:
            self.controller = self.id
        if not self.created:
            self.created = _now()
        if not self.updated:
            self.updated = self.created

    @classmethod
    def for_address(cls, did: str, address: str, chain_id: int = 1) -> "DIDDocument":
        """Default document of an Ethereum-address controlled DID"""
        key_id = f"{did}#controller"
        return cls(
            id=did,
            verification_method=[{
                "id": key_id,
                "type": "EcdsaSecp256k1RecoveryMethod2020",
                "controller": did,
                "blockchainAccountId": f"eip155:{chain_id}:{address}",
            }],
            authentication=[key_id],
            assertion_method=[key_id],
        )

    def ethereum_address(self) -> Optional[str]:
        """
        Address of the first assertion key, falling back to any key

        Understands ``blockchainAccountId`` (CAIP-10 or legacy ``0x..@eip155:1``)
        and ``ethereumAddress`` verification methods.
        """
        ordered = sorted(
            self.verification_method,
            key=lambda vm: vm.get("id") not in self.assertion_method,
        )
        for vm in ordered:
            account = vm.get("blockchainAccountId")
            if account:
                candidate = account.split("@")[0] if "@" in account else account.split(":")[-1]
                if is_address(candidate):
                    return candidate
            candidate = vm.get("ethereumAddress")
            if candidate and is_address(candidate):
                return candidate
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to W3C DID Document JSON format"""
        doc = {
            "@context": [
                "https://www.w3.org/ns/did/v1",
                "https://w3id.org/security/suites/secp256k1recovery-2020/v2",
            ],
            "id": self.id,
            "controller": self.controller,
            "verificationMethod": self.verification_method,
            "authentication": self.authentication,
            "assertionMethod": self.assertion_method,
            "created": self.created,
            "updated": self.updated,
        }
        if self.deactivated:
            doc["deactivated"] = self.deactivated
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DIDDocument":
        """Create DIDDocument from dictionary"""
        return cls(
            id=data["id"],
            controller=data.get("controller"),
            verification_method=data.get("verificationMethod", []),
            authentication=data.get("authentication", []),
            assertion_method=data.get("assertionMethod", []),
            created=data.get("created", ""),
            updated=data.get("updated", ""),
            deactivated=data.get("deactivated", False),
        )


class DIDManager:
    """
    In-memory DID registry

    Features:
    - Register an issuer key's DID
    - Rotate the controller address of a DID
    - Resolve DIDs to DID Documents
    - Deactivate DIDs
    """

    def __init__(self):
        self._documents: Dict[str, DIDDocument] = {}

    def create_from_key(self, issuer_key: IssuerKey) -> DIDDocument:
        """Register the DID derived from an issuer key"""
        return self.register(issuer_key.did, issuer_key.address)

    def register(self, did: str, address: str) -> DIDDocument:
        """
        Register (or rotate) the controller address of a DID

        Args:
            did: The DID
            address: Ethereum address allowed to sign for it

        Returns:
            The current DIDDocument
        """
        if not is_address(address):
            raise ValueError(f"Not an Ethereum address: {address}")

        doc = DIDDocument.for_address(did, address)
        previous = self._documents.get(did)
        if previous:
            doc.created = previous.created
            doc.updated = _now()
        self._documents[did] = doc
        return doc

    def resolve(self, did: str) -> Optional[DIDDocument]:
        """
        Resolve DID to DID Document

        Returns:
            DIDDocument if registered, None otherwise. Deactivated documents
            are returned as-is; callers decide what deactivation means.
        """
        return self._documents.get(did)

    def deactivate(self, did: str) -> bool:
        """Deactivate a DID"""
        doc = self._documents.get(did)
        if not doc:
            return False

        doc.deactivated = True
        doc.updated = _now()
        return True

    def list_dids(self) -> List[str]:
        """List all managed DIDs"""
        return list(self._documents.keys())
