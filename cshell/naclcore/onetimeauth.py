"""Poly1305 one-time authenticator and constant-time comparisons."""

from __future__ import annotations

import hmac

KEY_BYTES = 32
TAG_BYTES = 16

_P = (1 << 130) - 5
_R_CLAMP = 0x0FFFFFFC0FFFFFFC0FFFFFFC0FFFFFFF
_TAG_MASK = (1 << 128) - 1


def _verify(x: bytes, y: bytes, size: int) -> bool:
    x, y = bytes(x), bytes(y)
    if len(x) != size or len(y) != size:
        raise ValueError(f"both values must be {size} bytes")
    return hmac.compare_digest(x, y)


def verify_16(x: bytes, y: bytes) -> bool:
    """Compare two 16-byte values in constant time."""
    return _verify(x, y, 16)


def verify_32(x: bytes, y: bytes) -> bool:
    """Compare two 32-byte values in constant time."""
    return _verify(x, y, 32)


def onetimeauth(message: bytes, key: bytes) -> bytes:
    """Compute the 16-byte Poly1305 tag of a message under a 32-byte key."""
    key = bytes(key)
    if len(key) != KEY_BYTES:
        raise ValueError(f"key must be {KEY_BYTES} bytes, got {len(key)}")
    message = bytes(message)
    r = int.from_bytes(key[:16], "little") & _R_CLAMP
    s = int.from_bytes(key[16:], "little")

    h = 0
    for offset in range(0, len(message), 16):
        block = message[offset:offset + 16] + b"\x01"
        h = (h + int.from_bytes(block, "little")) * r % _P

    return ((h + s) & _TAG_MASK).to_bytes(TAG_BYTES, "little")


def onetimeauth_verify(tag: bytes, message: bytes, key: bytes) -> bool:
    """Check a Poly1305 tag; True when it matches."""
    return verify_16(tag, onetimeauth(message, key))