"""
Token Codec
===========

Compact ``header.payload.signature`` encoding of a signed credential.
Header and payload are canonical JSON, every segment is base64url without
padding.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Union

from .canonical import canonicalize
from .errors import EncodingError, MalformedTokenError

_B64URL = re.compile(r"[A-Za-z0-9_-]*")


def b64url_encode(data: bytes) -> str:
    """Encode bytes to a URL-safe Base64 string without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: Union[str, bytes]) -> bytes:
    """
    Decode an unpadded base64url string.

    Raises:
        EncodingError: on characters outside the alphabet or impossible length
    """
    if isinstance(s, bytes):
        try:
            s = s.decode("ascii")
        except UnicodeDecodeError as e:
            raise EncodingError("base64url data must be ASCII") from e

    if not _B64URL.fullmatch(s) or len(s) % 4 == 1:
        raise EncodingError("Invalid base64url data")

    pad = "=" * ((4 - len(s) % 4) % 4)
    try:
        return base64.urlsafe_b64decode((s + pad).encode("ascii"))
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"Invalid base64url data: {e}") from e


@dataclass(frozen=True)
class DecodedToken:
    """Structured parts of a token string"""
    header: Dict[str, Any]
    payload: Dict[str, Any]
    signature: bytes
    signing_input: bytes  # exactly the bytes the signature covers


def signing_input(header: Dict[str, Any], payload: Dict[str, Any]) -> bytes:
    """Encoded header and payload joined by a single dot"""
    encoded_header = b64url_encode(canonicalize(header))
    encoded_payload = b64url_encode(canonicalize(payload))
    return f"{encoded_header}.{encoded_payload}".encode("ascii")


def encode(header: Dict[str, Any], payload: Dict[str, Any], signature: bytes) -> str:
    """
    Encode header, payload and raw signature into a token string

    Raises:
        EncodingError: if header or payload cannot be canonicalized
    """
    return f"{signing_input(header, payload).decode('ascii')}.{b64url_encode(signature)}"


def _decode_json_segment(segment: str, name: str) -> Dict[str, Any]:
    try:
        raw = b64url_decode(segment)
    except EncodingError as e:
        raise MalformedTokenError(f"Token {name} is not base64url: {e}") from e

    try:
        value = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedTokenError(f"Token {name} is not valid JSON: {e}") from e

    if not isinstance(value, dict):
        raise MalformedTokenError(f"Token {name} must be a JSON object")
    return value


def decode(token: str) -> DecodedToken:
    """
    Split and decode a token string

    Args:
        token: ``header.payload.signature``

    Returns:
        DecodedToken

    Raises:
        MalformedTokenError: on any structural problem
    """
    if not isinstance(token, str):
        raise MalformedTokenError("Token must be a string")

    parts = token.strip().split(".")
    if len(parts) != 3:
        raise MalformedTokenError(
            f"Token must have exactly 3 segments, got {len(parts)}"
        )
    if not all(parts):
        raise MalformedTokenError("Token segments must not be empty")

    encoded_header, encoded_payload, encoded_signature = parts
    header = _decode_json_segment(encoded_header, "header")
    payload = _decode_json_segment(encoded_payload, "payload")

    try:
        signature = b64url_decode(encoded_signature)
    except EncodingError as e:
        raise MalformedTokenError(f"Token signature is not base64url: {e}") from e

    return DecodedToken(
        header=header,
        payload=payload,
        signature=signature,
        signing_input=f"{encoded_header}.{encoded_payload}".encode("ascii"),
    )
