"""
Verifiable Credentials Issuer
=============================

Issues Verifiable Credentials as compact ES256K-R tokens, following the
JWT encoding of the W3C Verifiable Credentials Data Model 1.1

Reference: https://www.w3.org/TR/vc-data-model/#json-web-token
"""

import copy
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import token_codec
from .canonical import canonicalize
from .errors import EncodingError, IssuerNotConfigured
from .key_manager import IssuerKey, sign, sign_message
from .storage import InMemoryStore, RecordStore

logger = logging.getLogger("CredentialIssuer")

VC_TYPE = "VerifiableCredential"
DEFAULT_CONTEXT = ["https://www.w3.org/2018/credentials/v1"]
DEFAULT_CREDENTIAL_TYPE = "IdentityCredential"
TOKEN_HEADER = {"alg": "ES256K-R", "typ": "JWT"}


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class CredentialClaimSet:
    """
    W3C Verifiable Credential claim set

    Immutable once issued; ``id`` is the key the revocation registry uses.
    """
    id: str
    issuer: str  # Issuer's DID
    issuance_date: str  # RFC3339, UTC
    credential_subject: Dict[str, Any] = field(default_factory=dict)
    type: List[str] = field(default_factory=lambda: [VC_TYPE])
    context: List[str] = field(default_factory=lambda: list(DEFAULT_CONTEXT))

    @property
    def subject(self) -> str:
        return self.credential_subject.get("id", "")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to W3C VC JSON format"""
        return {
            "@context": list(self.context),
            "id": self.id,
            "type": list(self.type),
            "issuer": self.issuer,
            "issuanceDate": self.issuance_date,
            "credentialSubject": copy.deepcopy(self.credential_subject),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialClaimSet":
        issuer = data.get("issuer", "")
        if isinstance(issuer, dict):
            issuer = issuer.get("id", "")
        return cls(
            context=data.get("@context", list(DEFAULT_CONTEXT)),
            id=data.get("id", ""),
            type=data.get("type", [VC_TYPE]),
            issuer=issuer,
            issuance_date=data.get("issuanceDate", ""),
            credential_subject=data.get("credentialSubject", {}),
        )


@dataclass(frozen=True)
class CredentialRecord:
    """Stored form of an issued credential. Never mutated after issuance."""
    id: str
    issuer: str
    subject: str
    jwt: Optional[str]
    raw: Dict[str, Any]  # token payload
    issued_at: int  # epoch ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "issuer": self.issuer,
            "subject": self.subject,
            "jwt": self.jwt,
            "raw": copy.deepcopy(self.raw),
            "issuedAt": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialRecord":
        return cls(
            id=data["id"],
            issuer=data.get("issuer", ""),
            subject=data.get("subject", ""),
            jwt=data.get("jwt"),
            raw=data.get("raw", {}),
            issued_at=data.get("issuedAt", 0),
        )


@dataclass(frozen=True)
class IssuedCredential:
    record: CredentialRecord
    token: str

    @property
    def claims(self) -> Dict[str, Any]:
        return copy.deepcopy(self.record.raw)

    def to_dict(self) -> Dict[str, Any]:
        return {"jwt": self.token, "vc": copy.deepcopy(self.record.raw)}


class CredentialIssuer:
    """
    Issues Verifiable Credentials

    Features:
    - Mint signed credential tokens
    - Sign claim sets for the detached (non-token) flow
    - Persist exactly one record per successful issuance
    """

    def __init__(
        self,
        issuer_key: Optional[IssuerKey],
        store: Optional[RecordStore[CredentialRecord]] = None,
        context: Optional[List[str]] = None,
        default_type: str = DEFAULT_CREDENTIAL_TYPE,
    ):
        self.issuer_key = issuer_key
        self.store = store if store is not None else InMemoryStore()
        self.context = list(context or DEFAULT_CONTEXT)
        self.default_type = default_type

    @property
    def issuer_did(self) -> Optional[str]:
        return self.issuer_key.did if self.issuer_key else None

    def _require_key(self) -> IssuerKey:
        if self.issuer_key is None:
            raise IssuerNotConfigured("ISSUER_PRIVATE_KEY not configured in env")
        return self.issuer_key

    # ==================== CREDENTIAL ISSUANCE ====================

    def build_claim_set(
        self,
        subject: str,
        credential_type: str,
        claims: Dict[str, Any],
        credential_id: str,
        issued: datetime,
    ) -> CredentialClaimSet:
        types = [VC_TYPE] if credential_type == VC_TYPE else [VC_TYPE, credential_type]
        return CredentialClaimSet(
            context=self.context,
            id=credential_id,
            type=types,
            issuer=self._require_key().did,
            issuance_date=_rfc3339(issued),
            credential_subject={**claims, "id": subject},
        )

    def issue(
        self,
        subject: Optional[str] = None,
        credential_type: Optional[str] = None,
        claims: Optional[Dict[str, Any]] = None,
        credential_id: Optional[str] = None,
        expires_in: Optional[int] = None,
    ) -> IssuedCredential:
        """
        Issue a signed Verifiable Credential

        Args:
            subject: Subject DID, a placeholder is generated if missing
            credential_type: Type label appended after "VerifiableCredential"
            claims: Claims about the subject
            credential_id: Credential identifier, generated if missing
            expires_in: Optional validity period in seconds

        Returns:
            IssuedCredential with the stored record and the token

        Raises:
            IssuerNotConfigured: if there is no issuer key
            EncodingError: if the claims cannot be canonicalized
            StoreIOError: if the record could not be persisted
        """
        key = self._require_key()

        if claims is None:
            claims = {}
        if not isinstance(claims, dict):
            raise EncodingError("claims must be a mapping")

        subject = subject or f"did:example:{secrets.token_hex(4)}"
        credential_type = credential_type or self.default_type
        credential_id = credential_id or f"urn:uuid:{uuid.uuid4()}"

        issued = datetime.now(timezone.utc)
        claim_set = self.build_claim_set(subject, credential_type, claims, credential_id, issued)

        payload: Dict[str, Any] = {
            "iss": key.did,
            "sub": subject,
            "nbf": int(issued.timestamp()),
            "jti": credential_id,
            "vc": claim_set.to_dict(),
        }
        if expires_in is not None:
            payload["exp"] = payload["nbf"] + int(expires_in)

        signed_bytes = token_codec.signing_input(TOKEN_HEADER, payload)
        signature = sign(signed_bytes, key)
        token = token_codec.encode(TOKEN_HEADER, payload, signature.to_bytes())

        record = CredentialRecord(
            id=credential_id,
            issuer=key.did,
            subject=subject,
            jwt=token,
            raw=copy.deepcopy(payload),
            issued_at=int(issued.timestamp() * 1000),
        )

        # Single commit point, nothing above touches the store
        self.store.append(record)

        logger.info(f"Issued credential {credential_id} to {subject}")
        return IssuedCredential(record=record, token=token)

    # ==================== DETACHED SIGNATURES ====================

    def sign_detached(self, claim_set: Any) -> str:
        """
        Sign a claim set's canonical JSON for the non-token flow

        Returns:
            Hex signature
        """
        key = self._require_key()
        return sign_message(canonicalize(claim_set), key)

    # ==================== UTILITIES ====================

    def list_credentials(self) -> List[CredentialRecord]:
        """Stored credentials, most recent first"""
        return self.store.list()

    def get_credential(self, credential_id: str) -> Optional[CredentialRecord]:
        """Get credential by ID"""
        for record in self.store.list():
            if record.id == credential_id:
                return record
        return None
