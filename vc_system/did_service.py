"""
Credential Service
==================

Wires the credential core together for an outer layer (HTTP routes, CLI):
- Credential issuance
- Credential verification (token or detached signature)
- Revocation
- Listing stored credentials
- File upload to the content store
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .config import VCSettings, settings as default_settings
from .content_store import ContentReference, ContentStore, LocalContentStore
from .credential_issuer import CredentialIssuer, CredentialRecord
from .credential_verifier import CredentialVerifier, VerificationResult
from .did_manager import DIDManager
from .did_resolver import DIDResolver, EthrDIDResolver
from .key_manager import IssuerKey, load_issuer_key
from .revocation import RevocationAck, RevocationEntry, RevocationRegistry
from .storage import JSONFileStore, RecordStore

logger = logging.getLogger("DIDService")


# ==================== REQUESTS ====================

@dataclass(frozen=True)
class IssuanceRequest:
    subject: Optional[str] = None
    type: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenVerificationRequest:
    token: str
    timeout: Optional[float] = None


@dataclass(frozen=True)
class DetachedVerificationRequest:
    claim_set: Dict[str, Any]
    signature: Optional[str] = None


VerificationRequest = Union[TokenVerificationRequest, DetachedVerificationRequest]


@dataclass(frozen=True)
class RevocationRequest:
    credential_id: Optional[str] = None


class DIDService:
    """
    Main service class for credential operations

    Args:
        config: settings, defaults to the environment-loaded ones
        issuer_key: overrides ISSUER_PRIVATE_KEY from the settings
        resolver: DID resolver, defaults to an EthrDIDResolver over
            an in-memory DIDManager that knows the issuer
        store: credential record store, defaults to DATA_DIR/VCS_FILE
        revocation_store: revocation store, defaults to DATA_DIR/REVOKE_FILE
        content_store: upload storage, defaults to DATA_DIR/uploads
    """

    def __init__(
        self,
        config: Optional[VCSettings] = None,
        issuer_key: Optional[IssuerKey] = None,
        resolver: Optional[DIDResolver] = None,
        store: Optional[RecordStore[CredentialRecord]] = None,
        revocation_store: Optional[RecordStore[RevocationEntry]] = None,
        content_store: Optional[ContentStore] = None,
    ):
        self.settings = config or default_settings

        if issuer_key is None and self.settings.ISSUER_PRIVATE_KEY:
            issuer_key = load_issuer_key(self.settings.ISSUER_PRIVATE_KEY, self.settings.DID_METHOD)
        if issuer_key is None:
            logger.warning("ISSUER_PRIVATE_KEY not configured, issuance is disabled")
        self.issuer_key = issuer_key

        self.did_manager = DIDManager()
        if issuer_key is not None:
            self.did_manager.create_from_key(issuer_key)

        if store is None:
            store = JSONFileStore(self.settings.vcs_path, CredentialRecord.from_dict)
        if revocation_store is None:
            revocation_store = JSONFileStore(self.settings.revocations_path, RevocationEntry.from_dict)

        self.credential_issuer = CredentialIssuer(
            issuer_key=issuer_key,
            store=store,
            context=self.settings.CREDENTIAL_CONTEXT,
            default_type=self.settings.DEFAULT_CREDENTIAL_TYPE,
        )
        self.revocations = RevocationRegistry(revocation_store)
        self.credential_verifier = CredentialVerifier(
            resolver=resolver or EthrDIDResolver(self.did_manager),
            revocations=self.revocations,
            timeout=self.settings.RESOLVER_TIMEOUT,
            clock_skew=self.settings.CLOCK_SKEW_SECONDS,
        )
        self.content_store = content_store or LocalContentStore(self.settings.upload_dir)

    @property
    def issuer_did(self) -> Optional[str]:
        return self.issuer_key.did if self.issuer_key else None

    # ==================== OPERATIONS ====================

    def issue(self, request: IssuanceRequest) -> Dict[str, Any]:
        """
        Issue a credential

        Returns:
            ``{"jwt": token, "vc": payload}``
        """
        issued = self.credential_issuer.issue(
            subject=request.subject,
            credential_type=request.type,
            claims=request.claims,
        )
        return issued.to_dict()

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        """Verify a token or a detached claim set + signature"""
        if isinstance(request, TokenVerificationRequest):
            return await self.credential_verifier.verify_token(request.token, timeout=request.timeout)
        if isinstance(request, DetachedVerificationRequest):
            return self.credential_verifier.verify_detached(request.claim_set, request.signature)
        raise TypeError(f"Unsupported verification request: {type(request).__name__}")

    def revoke(self, request: RevocationRequest) -> Dict[str, Any]:
        ack: RevocationAck = self.revocations.revoke(request.credential_id)
        return ack.to_dict()

    def list_credentials(self) -> List[CredentialRecord]:
        """Stored credentials, most recent first"""
        return self.credential_issuer.list_credentials()

    def upload(self, data: bytes, filename: str) -> ContentReference:
        return self.content_store.store(data, filename)

    # ==================== STATISTICS ====================

    def get_statistics(self) -> Dict[str, Any]:
        """Get overall credential statistics"""
        issued = len(self.credential_issuer.list_credentials())
        revoked = len(self.revocations.list_entries())
        return {
            "issuer": {
                "did": self.issuer_did,
                "address": self.issuer_key.address if self.issuer_key else None,
            },
            "credentials": {
                "total_issued": issued,
                "total_revoked": revoked,
            },
        }
