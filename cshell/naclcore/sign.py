"""SHA-512 and Ed25519 signatures."""

from __future__ import annotations

import os
import struct

from cshell.naclcore.onetimeauth import verify_32

HASH_BYTES = 64
STATE_BYTES = 64
BLOCK_BYTES = 128
SIGNATURE_BYTES = 64
PUBLIC_KEY_BYTES = 32
SECRET_KEY_BYTES = 64
SEED_BYTES = 32


class BadSignatureError(ValueError):
    """Raised when a signed message does not verify."""


_MASK64 = (1 << 64) - 1

_K = (
    0x428A2F98D728AE22, 0x7137449123EF65CD, 0xB5C0FBCFEC4D3B2F, 0xE9B5DBA58189DBBC,
    0x3956C25BF348B538, 0x59F111F1B605D019, 0x923F82A4AF194F9B, 0xAB1C5ED5DA6D8118,
    0xD807AA98A3030242, 0x12835B0145706FBE, 0x243185BE4EE4B28C, 0x550C7DC3D5FFB4E2,
    0x72BE5D74F27B896F, 0x80DEB1FE3B1696B1, 0x9BDC06A725C71235, 0xC19BF174CF692694,
    0xE49B69C19EF14AD2, 0xEFBE4786384F25E3, 0x0FC19DC68B8CD5B5, 0x240CA1CC77AC9C65,
    0x2DE92C6F592B0275, 0x4A7484AA6EA6E483, 0x5CB0A9DCBD41FBD4, 0x76F988DA831153B5,
    0x983E5152EE66DFAB, 0xA831C66D2DB43210, 0xB00327C898FB213F, 0xBF597FC7BEEF0EE4,
    0xC6E00BF33DA88FC2, 0xD5A79147930AA725, 0x06CA6351E003826F, 0x142929670A0E6E70,
    0x27B70A8546D22FFC, 0x2E1B21385C26C926, 0x4D2C6DFC5AC42AED, 0x53380D139D95B3DF,
    0x650A73548BAF63DE, 0x766A0ABB3C77B2A8, 0x81C2C92E47EDAEE6, 0x92722C851482353B,
    0xA2BFE8A14CF10364, 0xA81A664BBC423001, 0xC24B8B70D0F89791, 0xC76C51A30654BE30,
    0xD192E819D6EF5218, 0xD69906245565A910, 0xF40E35855771202A, 0x106AA07032BBD1B8,
    0x19A4C116B8D2D0C8, 0x1E376C085141AB53, 0x2748774CDF8EEB99, 0x34B0BCB5E19B48A8,
    0x391C0CB3C5C95A63, 0x4ED8AA4AE3418ACB, 0x5B9CCA4F7763E373, 0x682E6FF3D6B2B8A3,
    0x748F82EE5DEFB2FC, 0x78A5636F43172F60, 0x84C87814A1F0AB72, 0x8CC702081A6439EC,
    0x90BEFFFA23631E28, 0xA4506CEBDE82BDE9, 0xBEF9A3F7B2C67915, 0xC67178F2E372532B,
    0xCA273ECEEA26619C, 0xD186B8C721C0C207, 0xEADA7DD6CDE0EB1E, 0xF57D4F7FEE6ED178,
    0x06F067AA72176FBA, 0x0A637DC5A2C898A6, 0x113F9804BEF90DAE, 0x1B710B35131C471B,
    0x28DB77F523047D84, 0x32CAAB7B40C72493, 0x3C9EBE0A15C9BEBC, 0x431D67C49C100D4C,
    0x4CC5D4BECB3E42B6, 0x597F299CFC657E2A, 0x5FCB6FAB3AD6FAEC, 0x6C44198C4A475817,
)

_IV = bytes.fromhex(
    "6a09e667f3bcc908bb67ae8584caa73b3c6ef372fe94f82ba54ff53a5f1d36f1"
    "510e527fade682d19b05688c2b3e6c1f1f83d9abfb41bd6b5be0cd19137e2179"
)


def _rotr(x: int, c: int) -> int:
    return ((x >> c) | (x << (64 - c))) & _MASK64


def _compress(state: list[int], block: bytes) -> list[int]:
    w = list(struct.unpack(">16Q", block))
    for i in range(16, 80):
        s0 = _rotr(w[i - 15], 1) ^ _rotr(w[i - 15], 8) ^ (w[i - 15] >> 7)
        s1 = _rotr(w[i - 2], 19) ^ _rotr(w[i - 2], 61) ^ (w[i - 2] >> 6)
        w.append((w[i - 16] + s0 + w[i - 7] + s1) & _MASK64)

    a, b, c, d, e, f, g, h = state
    for k, wi in zip(_K, w):
        big_s1 = _rotr(e, 14) ^ _rotr(e, 18) ^ _rotr(e, 41)
        ch = (e & f) ^ (~e & g)
        t1 = (h + big_s1 + ch + k + wi) & _MASK64
        big_s0 = _rotr(a, 28) ^ _rotr(a, 34) ^ _rotr(a, 39)
        maj = (a & b) ^ (a & c) ^ (b & c)
        t2 = (big_s0 + maj) & _MASK64
        h, g, f, e = g, f, e, (d + t1) & _MASK64
        d, c, b, a = c, b, a, (t1 + t2) & _MASK64

    return [(s + v) & _MASK64 for s, v in zip(state, (a, b, c, d, e, f, g, h))]


def hashblocks(state: bytes, message: bytes) -> bytes:
    """Run the SHA-512 compression over every whole 128-byte block of ``message``.

    Trailing bytes that do not fill a block are left unprocessed.
    """
    state = bytes(state)
    if len(state) != STATE_BYTES:
        raise ValueError(f"state must be {STATE_BYTES} bytes, got {len(state)}")
    message = bytes(message)
    words = list(struct.unpack(">8Q", state))
    for offset in range(0, len(message) - BLOCK_BYTES + 1, BLOCK_BYTES):
        words = _compress(words, message[offset:offset + BLOCK_BYTES])
    return struct.pack(">8Q", *words)


def sha512(message: bytes) -> bytes:
    """Return the 64-byte SHA-512 digest of ``message``."""
    message = bytes(message)
    full = len(message) - len(message) % BLOCK_BYTES
    state = hashblocks(_IV, message[:full])
    tail = bytearray(message[full:])
    tail.append(0x80)
    padded_len = BLOCK_BYTES if len(tail) <= 112 else 2 * BLOCK_BYTES
    tail.extend(bytes(padded_len - 16 - len(tail)))
    tail.extend((len(message) * 8).to_bytes(16, "big"))
    return hashblocks(state, bytes(tail))


_P = 2**255 - 19
_L = 2**252 + 27742317777372353535851937790883648493
_D = -121665 * pow(121666, _P - 2, _P) % _P
_SQRT_M1 = pow(2, (_P - 1) // 4, _P)

_Point = tuple[int, int, int, int]
_NEUTRAL: _Point = (0, 1, 1, 0)


def _inv(x: int) -> int:
    return pow(x, _P - 2, _P)


def _recover_x(y: int) -> int | None:
    """Return a square root x of (y^2 - 1) / (d y^2 + 1), or None."""
    u = (y * y - 1) % _P
    v = (_D * y * y + 1) % _P
    x = u * pow(v, 3, _P) * pow(u * pow(v, 7, _P), (_P - 5) // 8, _P) % _P
    if (v * x * x - u) % _P:
        x = x * _SQRT_M1 % _P
    if (v * x * x - u) % _P:
        return None
    return x


def _base_point() -> _Point:
    y = 4 * _inv(5) % _P
    x = _recover_x(y)
    if x & 1:
        x = _P - x
    return (x, y, 1, x * y % _P)


_BASE = _base_point()


def _add(p: _Point, q: _Point) -> _Point:
    x1, y1, z1, t1 = p
    x2, y2, z2, t2 = q
    a = (y1 - x1) * (y2 - x2) % _P
    b = (y1 + x1) * (y2 + x2) % _P
    c = t1 * t2 * 2 * _D % _P
    d = 2 * z1 * z2 % _P
    e, f, g, h = b - a, d - c, d + c, b + a
    return (e * f % _P, h * g % _P, g * f % _P, e * h % _P)


def _scalarmult(point: _Point, scalar: int) -> _Point:
    result = _NEUTRAL
    for bit in range(scalar.bit_length() - 1, -1, -1):
        result = _add(result, result)
        if (scalar >> bit) & 1:
            result = _add(result, point)
    return result


def _pack(point: _Point) -> bytes:
    x, y, z, _ = point
    zi = _inv(z)
    x = x * zi % _P
    y = y * zi % _P
    return (y | ((x & 1) << 255)).to_bytes(32, "little")


def _unpack_negated(encoded: bytes) -> _Point | None:
    y = int.from_bytes(encoded, "little") & ((1 << 255) - 1)
    y %= _P
    x = _recover_x(y)
    if x is None:
        return None
    if (x & 1) == (encoded[31] >> 7):
        x = (_P - x) % _P
    return (x, y, 1, x * y % _P)


def _clamped_scalar(digest: bytes) -> int:
    d = bytearray(digest[:32])
    d[0] &= 248
    d[31] &= 127
    d[31] |= 64
    return int.from_bytes(d, "little")


def _public_from_seed(seed: bytes) -> bytes:
    return _pack(_scalarmult(_BASE, _clamped_scalar(sha512(seed))))


def sign_keypair() -> tuple[bytes, bytes]:
    """Generate a key pair; return (32-byte public key, 64-byte secret key)."""
    seed = os.urandom(SEED_BYTES)
    public_key = _public_from_seed(seed)
    return public_key, seed + public_key


def sign(message: bytes, secret_key: bytes) -> bytes:
    """Return the 64-byte signature followed by ``message``."""
    secret_key = bytes(secret_key)
    if len(secret_key) != SECRET_KEY_BYTES:
        raise ValueError(f"secret key must be {SECRET_KEY_BYTES} bytes, got {len(secret_key)}")
    message = bytes(message)
    digest = sha512(secret_key[:32])
    a = _clamped_scalar(digest)

    r = int.from_bytes(sha512(digest[32:] + message), "little") % _L
    encoded_r = _pack(_scalarmult(_BASE, r))
    h = int.from_bytes(sha512(encoded_r + secret_key[32:] + message), "little") % _L
    s = (r + h * a) % _L
    return encoded_r + s.to_bytes(32, "little") + message


def sign_open(signed: bytes, public_key: bytes) -> bytes:
    """Verify a signed message and return the message it carries.

    Raises BadSignatureError if the signature does not verify.
    """
    signed = bytes(signed)
    public_key = bytes(public_key)
    if len(public_key) != PUBLIC_KEY_BYTES:
        raise ValueError(f"public key must be {PUBLIC_KEY_BYTES} bytes, got {len(public_key)}")
    if len(signed) < SIGNATURE_BYTES:
        raise BadSignatureError("signed message is shorter than a signature")

    negated_a = _unpack_negated(public_key)
    if negated_a is None:
        raise BadSignatureError("public key is not a valid point")

    message = signed[SIGNATURE_BYTES:]
    h = int.from_bytes(sha512(signed[:32] + public_key + message), "little") % _L
    s = int.from_bytes(signed[32:64], "little")
    check = _add(_scalarmult(negated_a, h), _scalarmult(_BASE, s))
    if not verify_32(signed[:32], _pack(check)):
        raise BadSignatureError("signature does not match")
    return message