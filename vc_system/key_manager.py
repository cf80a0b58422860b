"""
Key Manager - issuer keys and secp256k1 signatures

Supports:
- ES256K-R: SHA-256 digest signed with secp256k1, recovery id kept so the
  signer address can be recovered from signature + message alone
- EIP-191 personal-message signatures for detached JSON credentials
"""

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .errors import EncodingError, InvalidKeyError

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def did_from_address(address: str, method: str = "ethr") -> str:
    """Build ``did:<method>:<address>``"""
    return f"did:{method}:{address}"


@dataclass(frozen=True)
class IssuerKey:
    """Issuer signing key. Read-only, shared across issuance calls."""
    private_key: str = field(repr=False)  # 0x-prefixed hex, never logged
    address: str                          # EIP-55 checksum address
    did: str

    @property
    def method(self) -> str:
        return self.did.split(":")[1]


@dataclass(frozen=True)
class Signature:
    """secp256k1 signature as (r, s, recovery id)"""
    r: int
    s: int
    recovery_id: int

    def to_bytes(self) -> bytes:
        """r (32 bytes) || s (32 bytes) || recovery id (1 byte)"""
        return (
            self.r.to_bytes(32, "big")
            + self.s.to_bytes(32, "big")
            + bytes([self.recovery_id])
        )

    def rs_bytes(self) -> bytes:
        """r || s only, as used by plain ES256K"""
        return self.to_bytes()[:64]

    @classmethod
    def from_bytes(cls, raw: bytes, recovery_id: Optional[int] = None) -> "Signature":
        """
        Parse 65 bytes (r || s || v) or 64 bytes (r || s) plus a recovery id

        Raises:
            EncodingError: on wrong length or recovery id
        """
        if len(raw) == 65:
            recovery_id = raw[64]
        elif len(raw) != 64 or recovery_id is None:
            raise EncodingError(f"Signature must be 65 bytes (or 64 with recovery id), got {len(raw)}")

        # Ethereum-style v
        if recovery_id in (27, 28):
            recovery_id -= 27
        if recovery_id not in (0, 1):
            raise EncodingError(f"Invalid recovery id: {recovery_id}")

        return cls(
            r=int.from_bytes(raw[:32], "big"),
            s=int.from_bytes(raw[32:64], "big"),
            recovery_id=recovery_id,
        )


# ==================== KEY LOADING ====================

def _private_key_bytes(private_key: Union[str, bytes, None]) -> bytes:
    if private_key is None or private_key == "" or private_key == b"":
        raise InvalidKeyError("Issuer private key is absent")

    if isinstance(private_key, str):
        text = private_key.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise InvalidKeyError("Issuer private key is not valid hex") from e
    elif isinstance(private_key, (bytes, bytearray)):
        raw = bytes(private_key)
    else:
        raise InvalidKeyError(f"Unsupported private key type: {type(private_key).__name__}")

    if len(raw) != 32:
        raise InvalidKeyError(f"Issuer private key must be 32 bytes, got {len(raw)}")

    value = int.from_bytes(raw, "big")
    if value == 0:
        raise InvalidKeyError("Issuer private key must not be zero")
    if value >= SECP256K1_N:
        raise InvalidKeyError("Issuer private key is outside the secp256k1 range")
    return raw


def load_issuer_key(private_key: Union[str, bytes, None], method: str = "ethr") -> IssuerKey:
    """
    Create an IssuerKey from an existing secp256k1 private key

    Args:
        private_key: hex string (with or without 0x) or 32 raw bytes
        method: DID method used for the derived issuer DID

    Returns:
        IssuerKey whose DID is ``did:<method>:<checksum address>``

    Raises:
        InvalidKeyError: if the key is absent, malformed or zero
    """
    raw = _private_key_bytes(private_key)
    account = Account.from_key(raw)

    return IssuerKey(
        private_key="0x" + raw.hex(),
        address=account.address,
        did=did_from_address(account.address, method),
    )


def generate_issuer_key(method: str = "ethr") -> IssuerKey:
    """Generate a fresh secp256k1 issuer key"""
    account = Account.create()
    return load_issuer_key(bytes(account.key), method)


# ==================== SIGNING ====================

def digest(message: bytes) -> bytes:
    """ES256K message digest"""
    return hashlib.sha256(message).digest()


def sign(message: bytes, key: IssuerKey) -> Signature:
    """
    Sign message bytes with the issuer key (deterministic RFC6979 nonce)

    Args:
        message: bytes to sign, hashed with SHA-256 first
        key: issuer key

    Returns:
        Signature with recovery id
    """
    if key is None:
        raise InvalidKeyError("Issuer private key is absent")

    private_key = keys.PrivateKey(_private_key_bytes(key.private_key))
    signed = private_key.sign_msg_hash(digest(message))
    return Signature(r=signed.r, s=signed.s, recovery_id=signed.v)


def sign_message(message: bytes, key: IssuerKey) -> str:
    """
    Sign message with the issuer key (Ethereum personal_sign style)

    Returns:
        0x-prefixed hex signature (65 bytes)
    """
    if key is None:
        raise InvalidKeyError("Issuer private key is absent")

    signed = Account.sign_message(encode_defunct(primitive=message), private_key=key.private_key)
    return "0x" + bytes(signed.signature).hex()


# ==================== RECOVERY ====================

def recover_address(signature: Signature, message: bytes) -> str:
    """
    Recover the signer's checksum address from an ES256K-R signature

    Raises:
        BadSignature / ValidationError: if no public key can be recovered
    """
    eth_signature = keys.Signature(vrs=(signature.recovery_id, signature.r, signature.s))
    public_key = eth_signature.recover_public_key_from_msg_hash(digest(message))
    return public_key.to_checksum_address()


def candidate_addresses(raw_signature: bytes, message: bytes) -> List[str]:
    """
    Every address a signature could belong to.

    65-byte signatures carry their recovery id and give one address;
    64-byte ES256K signatures give up to two.
    """
    if len(raw_signature) == 65:
        signatures = [Signature.from_bytes(raw_signature)]
    else:
        signatures = [Signature.from_bytes(raw_signature, recovery_id=v) for v in (0, 1)]

    addresses = []
    for signature in signatures:
        try:
            addresses.append(recover_address(signature, message))
        except (BadSignature, ValidationError, ValueError):
            continue
    return addresses


def signature_from_hex(signature: str) -> bytes:
    """
    Decode a 0x-prefixed (or bare) hex signature

    Raises:
        EncodingError: if the signature is not a hex string
    """
    if not isinstance(signature, str):
        raise EncodingError("Signature must be a hex string")
    text = signature.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise EncodingError("Signature is not valid hex") from e


def recover_message_signer(message: bytes, signature: Union[str, bytes]) -> str:
    """
    Recover the address that produced a personal_sign signature

    Args:
        message: the signed bytes (before the EIP-191 prefix)
        signature: hex string or raw bytes, r || s || v

    Raises:
        EncodingError: if the signature is not hex, not 65 bytes or has a bad v
        BadSignature / ValidationError / ValueError: if recovery fails
    """
    raw = signature if isinstance(signature, bytes) else signature_from_hex(signature)
    parsed = Signature.from_bytes(raw)
    # eth_account expects v in {27, 28}
    normalized = parsed.rs_bytes() + bytes([parsed.recovery_id + 27])
    return Account.recover_message(encode_defunct(primitive=message), signature=normalized)
