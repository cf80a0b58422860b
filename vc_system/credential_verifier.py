"""
Verifiable Credentials Verifier
================================

Two explicit verification paths:
- token: decode, recover the signer from the signature, check it against the
  address the issuer DID resolves to
- detached: recover the signer of a claim set's canonical JSON and compare it
  with the address embedded in its issuer DID

Both report revocation from a fresh registry read.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from eth_keys.exceptions import BadSignature, ValidationError

from . import token_codec
from .canonical import canonicalize
from .did_manager import address_from_did
from .did_resolver import DIDResolver, resolve_address
from .errors import EncodingError, MalformedTokenError, MissingSignatureError, UnresolvableDID
from .key_manager import candidate_addresses, recover_message_signer, signature_from_hex
from .revocation import RevocationRegistry

logger = logging.getLogger("CredentialVerifier")

SIGNATURE_LENGTHS = {"ES256K-R": 65, "ES256K": 64}


class VerificationStatus(Enum):
    """Credential verification status"""
    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    SIGNER_MISMATCH = "signer_mismatch"
    UNRESOLVABLE_DID = "UnresolvableDID"
    MISSING_ISSUER = "missing_issuer"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"


@dataclass
class VerificationResult:
    """Result of credential verification"""
    status: VerificationStatus
    revoked: bool
    signer: Optional[str] = None
    issuer: Optional[str] = None
    expected_signer: Optional[str] = None
    credential_id: Optional[str] = None
    claims: Optional[Dict[str, Any]] = None  # token path only
    errors: List[str] = field(default_factory=list)
    verified_at: str = ""

    def __post_init__(self):
        if not self.verified_at:
            self.verified_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    @property
    def valid(self) -> bool:
        return self.status == VerificationStatus.VALID

    @property
    def reason(self) -> Optional[str]:
        return None if self.valid else self.status.value

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "valid": self.valid,
            "revoked": self.revoked,
            "status": self.status.value,
            "reason": self.reason,
            "signer": self.signer,
            "issuer": self.issuer,
            "expectedSigner": self.expected_signer,
            "credentialId": self.credential_id,
            "errors": self.errors,
            "verifiedAt": self.verified_at,
        }
        if self.claims is not None:
            result["claims"] = self.claims
        return result


def _issuer_of(claim_set: Dict[str, Any]) -> Optional[str]:
    issuer = claim_set.get("issuer")
    if isinstance(issuer, dict):
        issuer = issuer.get("id")
    return issuer if isinstance(issuer, str) and issuer else None


class CredentialVerifier:
    """
    Verifies Verifiable Credentials

    Args:
        resolver: DIDResolver for issuer DIDs (token path)
        revocations: registry consulted on every call
        timeout: default resolver timeout in seconds
        clock_skew: tolerance in seconds for nbf / exp
    """

    def __init__(
        self,
        resolver: DIDResolver,
        revocations: RevocationRegistry,
        timeout: Optional[float] = 10.0,
        clock_skew: int = 300,
    ):
        self.resolver = resolver
        self.revocations = revocations
        self.timeout = timeout
        self.clock_skew = clock_skew

    # ==================== TOKEN PATH ====================

    async def verify_token(self, token: str, timeout: Optional[float] = None) -> VerificationResult:
        """
        Verify a credential token

        Args:
            token: ``header.payload.signature``
            timeout: resolver timeout, defaults to the verifier's

        Returns:
            VerificationResult; ``claims`` holds the decoded payload

        Raises:
            MalformedTokenError: if the token cannot be decoded or lacks an issuer
        """
        decoded = token_codec.decode(token)

        alg = decoded.header.get("alg")
        if alg not in SIGNATURE_LENGTHS:
            raise MalformedTokenError(f"Unsupported token algorithm: {alg}")
        if len(decoded.signature) != SIGNATURE_LENGTHS[alg]:
            raise MalformedTokenError(
                f"{alg} signature must be {SIGNATURE_LENGTHS[alg]} bytes, got {len(decoded.signature)}"
            )

        payload = decoded.payload
        vc = payload.get("vc") if isinstance(payload.get("vc"), dict) else {}
        issuer = payload.get("iss") or _issuer_of(vc)
        if not isinstance(issuer, str) or not issuer:
            raise MalformedTokenError("Token has no issuer")
        credential_id = vc.get("id") or payload.get("jti")

        try:
            candidates = candidate_addresses(decoded.signature, decoded.signing_input)
        except EncodingError:
            candidates = []

        if not candidates:
            return await self._token_result(
                VerificationStatus.INVALID_SIGNATURE, issuer, credential_id, payload,
                errors=["Signature does not recover to any public key"],
            )

        try:
            expected = await resolve_address(
                self.resolver, issuer, self.timeout if timeout is None else timeout
            )
        except UnresolvableDID as e:
            return await self._token_result(
                VerificationStatus.UNRESOLVABLE_DID, issuer, credential_id, payload,
                signer=candidates[0], errors=[e.message],
            )

        matching = [a for a in candidates if a.lower() == expected.lower()]
        if not matching:
            return await self._token_result(
                VerificationStatus.SIGNER_MISMATCH, issuer, credential_id, payload,
                signer=candidates[0], expected=expected,
                errors=[f"Token was not signed by the key of {issuer}"],
            )

        status, errors = self._check_timing(payload)
        return await self._token_result(
            status, issuer, credential_id, payload,
            signer=matching[0], expected=expected, errors=errors,
        )

    def _check_timing(self, payload: Dict[str, Any]):
        now = time.time()
        nbf = payload.get("nbf")
        exp = payload.get("exp")
        for name, value in (("nbf", nbf), ("exp", exp)):
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise MalformedTokenError(f"Token {name} must be a number")

        if nbf is not None and nbf > now + self.clock_skew:
            return VerificationStatus.NOT_YET_VALID, ["Credential is not yet valid"]
        if exp is not None and exp <= now - self.clock_skew:
            return VerificationStatus.EXPIRED, ["Credential has expired"]
        return VerificationStatus.VALID, []

    async def _token_result(
        self,
        status: VerificationStatus,
        issuer: str,
        credential_id: Optional[str],
        payload: Dict[str, Any],
        signer: Optional[str] = None,
        expected: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> VerificationResult:
        # file-backed stores block
        loop = asyncio.get_running_loop()
        revoked = await loop.run_in_executor(None, self.revocations.is_revoked, credential_id)
        result = VerificationResult(
            status=status,
            revoked=revoked,
            signer=signer,
            issuer=issuer,
            expected_signer=expected,
            credential_id=credential_id,
            claims=payload,
            errors=errors or [],
        )
        logger.info(
            f"Token verification for {credential_id}: {status.value}"
            f"{' (revoked)' if result.revoked else ''}"
        )
        return result

    # ==================== DETACHED PATH ====================

    def verify_detached(self, claim_set: Any, signature: Optional[str]) -> VerificationResult:
        """
        Verify a claim set with a separately transmitted signature

        Args:
            claim_set: the credential JSON object
            signature: hex personal_sign signature over its canonical JSON

        Returns:
            VerificationResult (no ``claims``)

        Raises:
            MissingSignatureError: if no signature is supplied
            EncodingError: if the claim set cannot be canonicalized or the
                signature is not hex
        """
        if not signature:
            raise MissingSignatureError("no signature to verify")

        if hasattr(claim_set, "to_dict"):
            claim_set = claim_set.to_dict()
        if not isinstance(claim_set, dict):
            raise EncodingError("Claim set must be a JSON object")

        canonical = canonicalize(claim_set)
        raw_signature = signature_from_hex(signature)
        issuer = _issuer_of(claim_set)
        expected = address_from_did(issuer) if issuer else None
        credential_id = claim_set.get("id")

        errors: List[str] = []
        signer: Optional[str] = None
        try:
            signer = recover_message_signer(canonical, raw_signature)
        except (EncodingError, BadSignature, ValidationError, ValueError) as e:
            status = VerificationStatus.INVALID_SIGNATURE
            errors.append(f"Signature recovery failed: {e}")
        else:
            if not expected:
                status = VerificationStatus.MISSING_ISSUER
                errors.append("Claim set has no issuer DID with an address")
            elif signer.lower() == expected.lower():
                status = VerificationStatus.VALID
            else:
                status = VerificationStatus.SIGNER_MISMATCH
                errors.append(f"Recovered signer {signer} does not match issuer address {expected}")

        result = VerificationResult(
            status=status,
            revoked=self.revocations.is_revoked(credential_id) if isinstance(credential_id, str) else False,
            signer=signer,
            issuer=issuer,
            expected_signer=expected,
            credential_id=credential_id,
            errors=errors,
        )
        logger.info(f"Detached verification for {credential_id}: {status.value}")
        return result
