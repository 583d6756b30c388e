"""
Identity codec.

Entities are addressed externally by UUID strings and stored under 16-byte
binary keys (RFC 4122 byte order, same as MySQL UUID_TO_BIN without the swap
flag). Conversion happens only at the storage edge.
"""
import uuid
from typing import Union

from shopledger.core.errors import InvalidIdentifierError

KEY_LENGTH = 16


def to_internal_key(value: str) -> bytes:
    """Convert a UUID string to its 16-byte storage key."""
    if not isinstance(value, str):
        raise InvalidIdentifierError(f"Identifier must be a UUID string, got {type(value).__name__}")
    try:
        return uuid.UUID(value.strip()).bytes
    except ValueError:
        raise InvalidIdentifierError(f"Malformed identifier: {value!r}")


def to_external_id(key: bytes) -> str:
    """Convert a 16-byte storage key back to its canonical UUID string."""
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise InvalidIdentifierError(f"Key must be bytes, got {type(key).__name__}")
    raw = bytes(key)
    if len(raw) != KEY_LENGTH:
        raise InvalidIdentifierError(f"Key must be exactly {KEY_LENGTH} bytes, got {len(raw)}")
    return str(uuid.UUID(bytes=raw))


def coerce_key(value: Union[str, bytes]) -> bytes:
    """Accept either representation at the API boundary and return the key."""
    if isinstance(value, str):
        return to_internal_key(value)
    # Round-trip validates the length
    return to_internal_key(to_external_id(value))


def new_key() -> bytes:
    return uuid.uuid4().bytes
