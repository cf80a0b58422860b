"""
Identity resolution.

Resolution is a suspend point: resolvers are async and every lookup made by
the verifier is bounded by a timeout.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .did_manager import DIDDocument, DIDManager, address_from_did, is_address
from .errors import UnresolvableDID

logger = logging.getLogger("DIDResolver")


class DIDResolver(ABC):
    """Maps a DID to its DID Document"""

    @abstractmethod
    async def resolve(self, did: str) -> DIDDocument:
        """
        Raises:
            UnresolvableDID: if the DID cannot be resolved
        """


class EthrDIDResolver(DIDResolver):
    """
    Resolver for Ethereum-address DIDs.

    Documents registered in the DIDManager win, so key rotation and
    deactivation are honoured. Otherwise a ``did:ethr`` DID resolves to its
    default document, controlled by the address in the DID itself.
    """

    def __init__(self, registry: Optional[DIDManager] = None, chain_id: int = 1):
        self.registry = registry
        self.chain_id = chain_id

    async def resolve(self, did: str) -> DIDDocument:
        if self.registry is not None:
            doc = self.registry.resolve(did)
            if doc is not None:
                return doc

        if not isinstance(did, str) or not did.startswith("did:ethr:"):
            raise UnresolvableDID(did, f"Unsupported DID method: {did}")

        address = address_from_did(did)
        if not address or not is_address(address):
            raise UnresolvableDID(did, f"Malformed did:ethr identifier: {did}")

        return DIDDocument.for_address(did.split("#")[0], address, self.chain_id)


class StaticDIDResolver(DIDResolver):
    """Fixed DID -> address table"""

    def __init__(self, addresses: Optional[Dict[str, str]] = None):
        self._addresses = dict(addresses or {})

    async def resolve(self, did: str) -> DIDDocument:
        address = self._addresses.get(did)
        if address is None:
            raise UnresolvableDID(did)
        return DIDDocument.for_address(did, address)


async def resolve_address(resolver: DIDResolver, did: str, timeout: Optional[float] = None) -> str:
    """
    Resolve a DID to the address allowed to sign for it

    Args:
        resolver: DIDResolver to ask
        did: DID to resolve
        timeout: seconds before giving up, None waits indefinitely

    Returns:
        Ethereum address from the DID Document

    Raises:
        UnresolvableDID: on failure, timeout, deactivation or a document
            without an Ethereum address
    """
    try:
        doc = await asyncio.wait_for(resolver.resolve(did), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"Resolution of {did} timed out after {timeout}s")
        raise UnresolvableDID(did, f"Resolution of {did} timed out") from e
    except UnresolvableDID as e:
        logger.warning(e.message)
        raise

    if doc.deactivated:
        raise UnresolvableDID(did, f"DID is deactivated: {did}")

    address = doc.ethereum_address()
    if not address:
        raise UnresolvableDID(did, f"DID Document has no Ethereum address: {did}")
    return address
