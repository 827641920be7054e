"""Request fingerprinting for cache keys and execution logs."""

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize a value deterministically.

    Keys are sorted at every nesting level and separators carry no
    whitespace, so structurally equal values always serialize identically.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(text: str) -> str:
    """Return the SHA-256 hex digest of a UTF-8 string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def stable_hash(value: Any) -> str:
    """Fingerprint a JSON-serializable value.

    Args:
        value: Any structure of dicts, lists, strings, numbers, bools and None

    Returns:
        64-character hex digest

    Raises:
        TypeError: If the value is not JSON-serializable
    """
    return sha256_hex(canonical_json(value))
