"""
Canonical JSON serialization for signing.

Signer and verifier must produce byte-identical output for the same logical
claim set, whatever the key insertion order.
"""

import json
import math
from typing import Any

from .errors import EncodingError


def _check_value(value: Any, path: str = "$") -> None:
    """Reject anything outside the closed claim-value set"""
    # bool is an int subclass; both are fine
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"Non-finite number at {path}")
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_value(item, f"{path}[{index}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f"Non-string key {key!r} at {path}")
            _check_value(item, f"{path}.{key}")
        return
    raise EncodingError(f"Unsupported value of type {type(value).__name__} at {path}")


def canonicalize(claim_set: Any) -> bytes:
    """
    Canonicalise a claim set for signature and verification.

    - sort_keys=True at every nesting level
    - separators=(',', ':') removes whitespace variations
    - ensure_ascii=False keeps UTF-8 stable (then encode to UTF-8)
    - allow_nan=False, non-finite numbers are not JSON

    Args:
        claim_set: mapping (or object with ``to_dict()``) of claim values

    Returns:
        UTF-8 encoded canonical JSON

    Raises:
        EncodingError: if a value is not representable
    """
    if hasattr(claim_set, "to_dict"):
        claim_set = claim_set.to_dict()

    _check_value(claim_set)

    try:
        text = json.dumps(
            claim_set,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Claim set is not serializable: {e}") from e

    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        # lone surrogates
        raise EncodingError(f"Claim set is not valid UTF-8: {e}") from e
