"""
Error taxonomy for the credential core
======================================

Every caller-facing failure carries a stable ``kind`` discriminant and a
human-readable message. Resolver problems are the exception: the verifier
turns them into ``valid=False`` results instead of raising.
"""

from typing import Dict


class VCError(Exception):
    """Base class for all credential core failures"""

    kind = "VCError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind, "message": self.message}


class IssuerNotConfigured(VCError):
    """No issuer signing key is available"""

    kind = "IssuerNotConfigured"


class InvalidKeyError(VCError):
    """Issuer key is absent, malformed or zero"""

    # Not named KeyError to avoid shadowing the builtin
    kind = "KeyError"


class EncodingError(VCError):
    """A value cannot be canonically serialized or decoded"""

    kind = "EncodingError"


class MalformedTokenError(VCError):
    kind = "MalformedTokenError"


class MissingSignatureError(VCError):
    kind = "MissingSignatureError"


class UnresolvableDID(VCError):
    """DID could not be resolved to verification material"""

    kind = "UnresolvableDID"

    def __init__(self, did: str, message: str = ""):
        super().__init__(message or f"Could not resolve DID: {did}")
        self.did = did


class MissingIdentifier(VCError):
    kind = "MissingIdentifier"


class StoreIOError(VCError):
    """Persisted credential or revocation state could not be read or written"""

    kind = "StoreIOError"
