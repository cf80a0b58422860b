"""
Verifiable Credential System
============================

Issues, verifies and revokes Verifiable Credentials bound to Ethereum-address
DIDs (did:ethr), signed with secp256k1.

Components:
- canonicalize: deterministic JSON bytes for signing
- key_manager: issuer keys, ES256K-R signing and signer recovery
- token_codec: compact header.payload.signature tokens
- CredentialIssuer: mints credentials and persists records
- CredentialVerifier: token and detached-signature verification
- RevocationRegistry: append-only revocation list
- DIDService: wires everything together from settings

Standards:
- W3C Verifiable Credentials: https://www.w3.org/TR/vc-data-model/
- W3C DID Core 1.0: https://www.w3.org/TR/did-core/
"""

from .canonical import canonicalize
from .content_store import ContentReference, ContentStore, LocalContentStore
from .credential_issuer import (
    CredentialClaimSet,
    CredentialIssuer,
    CredentialRecord,
    IssuedCredential,
)
from .credential_verifier import CredentialVerifier, VerificationResult, VerificationStatus
from .did_manager import DIDDocument, DIDManager
from .did_resolver import DIDResolver, EthrDIDResolver, StaticDIDResolver, resolve_address
from .did_service import (
    DetachedVerificationRequest,
    DIDService,
    IssuanceRequest,
    RevocationRequest,
    TokenVerificationRequest,
)
from .errors import (
    EncodingError,
    InvalidKeyError,
    IssuerNotConfigured,
    MalformedTokenError,
    MissingIdentifier,
    MissingSignatureError,
    StoreIOError,
    UnresolvableDID,
    VCError,
)
from .key_manager import IssuerKey, Signature, generate_issuer_key, load_issuer_key
from .revocation import RevocationEntry, RevocationRegistry
from .storage import InMemoryStore, JSONFileStore, RecordStore

__version__ = "1.0.0"
__all__ = [
    # Core
    "canonicalize",
    "IssuerKey",
    "Signature",
    "load_issuer_key",
    "generate_issuer_key",

    # Credentials
    "CredentialClaimSet",
    "CredentialIssuer",
    "CredentialRecord",
    "IssuedCredential",
    "CredentialVerifier",
    "VerificationResult",
    "VerificationStatus",
    "RevocationEntry",
    "RevocationRegistry",

    # DIDs
    "DIDDocument",
    "DIDManager",
    "DIDResolver",
    "EthrDIDResolver",
    "StaticDIDResolver",
    "resolve_address",

    # Storage
    "RecordStore",
    "InMemoryStore",
    "JSONFileStore",
    "ContentStore",
    "ContentReference",
    "LocalContentStore",

    # Errors
    "VCError",
    "IssuerNotConfigured",
    "InvalidKeyError",
    "EncodingError",
    "MalformedTokenError",
    "MissingSignatureError",
    "UnresolvableDID",
    "MissingIdentifier",
    "StoreIOError",

    # Service
    "DIDService",
    "IssuanceRequest",
    "TokenVerificationRequest",
    "DetachedVerificationRequest",
    "RevocationRequest",
]
