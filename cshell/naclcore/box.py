"""Curve25519 key agreement and XSalsa20-Poly1305 authenticated encryption.

Ciphertexts carry the 16-byte Poly1305 tag in front of the encrypted bytes;
callers pass and receive messages without any zero padding.
"""

from __future__ import annotations

import os

from cshell.naclcore.onetimeauth import TAG_BYTES, onetimeauth, onetimeauth_verify
from cshell.naclcore.stream import SIGMA, core_hsalsa20, stream, stream_xor

KEY_BYTES = 32
NONCE_BYTES = 24
PUBLIC_KEY_BYTES = 32
SECRET_KEY_BYTES = 32
BEFORENM_BYTES = 32
SCALAR_BYTES = 32

_P = 2**255 - 19
_A24 = 121665
_BASE_POINT = bytes([9]) + bytes(31)
_ZERO_BLOCK = bytes(32)


class CryptoError(ValueError):
    """Raised when a ciphertext fails to authenticate."""


def _require(name: str, value: bytes, size: int) -> bytes:
    data = bytes(value)
    if len(data) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(data)}")
    return data


def secretbox(message: bytes, nonce: bytes, key: bytes) -> bytes:
    """Encrypt and authenticate ``message``; return tag followed by ciphertext."""
    nonce = _require("nonce", nonce, NONCE_BYTES)
    key = _require("key", key, KEY_BYTES)
    padded = stream_xor(_ZERO_BLOCK + bytes(message), nonce, key)
    auth_key, ciphertext = padded[:32], padded[32:]
    return onetimeauth(ciphertext, auth_key) + ciphertext


def secretbox_open(ciphertext: bytes, nonce: bytes, key: bytes) -> bytes:
    """Check and decrypt the output of :func:`secretbox`.

    Raises CryptoError if the data is too short or does not authenticate.
    """
    nonce = _require("nonce", nonce, NONCE_BYTES)
    key = _require("key", key, KEY_BYTES)
    ciphertext = bytes(ciphertext)
    if len(ciphertext) < TAG_BYTES:
        raise CryptoError("ciphertext is shorter than the authentication tag")
    tag, body = ciphertext[:TAG_BYTES], ciphertext[TAG_BYTES:]
    if not onetimeauth_verify(tag, body, stream(32, nonce, key)):
        raise CryptoError("ciphertext failed authentication")
    return stream_xor(_ZERO_BLOCK + body, nonce, key)[32:]


def scalarmult(scalar: bytes, point: bytes) -> bytes:
    """Multiply a Curve25519 point (u coordinate) by a clamped scalar."""
    n = bytearray(_require("scalar", scalar, SCALAR_BYTES))
    n[0] &= 248
    n[31] = (n[31] & 127) | 64
    k = int.from_bytes(n, "little")
    x1 = int.from_bytes(_require("point", point, PUBLIC_KEY_BYTES), "little")
    x1 &= (1 << 255) - 1

    x2, z2, x3, z3 = 1, 0, x1, 1
    swap = 0
    for t in range(254, -1, -1):
        bit = (k >> t) & 1
        if swap ^ bit:
            x2, x3 = x3, x2
            z2, z3 = z3, z2
        swap = bit
        a = (x2 + z2) % _P
        aa = a * a % _P
        b = (x2 - z2) % _P
        bb = b * b % _P
        e = (aa - bb) % _P
        c = (x3 + z3) % _P
        d = (x3 - z3) % _P
        da = d * a % _P
        cb = c * b % _P
        x3 = (da + cb) ** 2 % _P
        z3 = x1 * (da - cb) ** 2 % _P
        x2 = aa * bb % _P
        z2 = e * (aa + _A24 * e) % _P
    if swap:
        x2, z2 = x3, z3

    return (x2 * pow(z2, _P - 2, _P) % _P).to_bytes(32, "little")


def scalarmult_base(scalar: bytes) -> bytes:
    """Multiply the standard base point by ``scalar``."""
    return scalarmult(scalar, _BASE_POINT)


def box_keypair() -> tuple[bytes, bytes]:
    """Generate a key pair; return (public key, secret key)."""
    secret_key = os.urandom(SECRET_KEY_BYTES)
    return scalarmult_base(secret_key), secret_key


def box_beforenm(public_key: bytes, secret_key: bytes) -> bytes:
    """Derive the 32-byte shared key for a peer's public key and our secret key."""
    shared = scalarmult(secret_key, public_key)
    return core_hsalsa20(bytes(16), shared, SIGMA)


def box_afternm(message: bytes, nonce: bytes, key: bytes) -> bytes:
    """Encrypt with a precomputed shared key."""
    return secretbox(message, nonce, key)


def box_open_afternm(ciphertext: bytes, nonce: bytes, key: bytes) -> bytes:
    """Decrypt with a precomputed shared key; raises CryptoError on forgery."""
    return secretbox_open(ciphertext, nonce, key)


def box(message: bytes, nonce: bytes, public_key: bytes, secret_key: bytes) -> bytes:
    """Encrypt ``message`` for the holder of ``public_key``."""
    return box_afternm(message, nonce, box_beforenm(public_key, secret_key))


def box_open(ciphertext: bytes, nonce: bytes, public_key: bytes, secret_key: bytes) -> bytes:
    """Decrypt a message sent by the holder of ``public_key``."""
    return box_open_afternm(ciphertext, nonce, box_beforenm(public_key, secret_key))