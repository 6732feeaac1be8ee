"""Salsa20 and XSalsa20 stream ciphers and their core functions."""

from __future__ import annotations

import struct

SIGMA = b"expand 32-byte k"

KEY_BYTES = 32
NONCE_BYTES = 24
SALSA20_NONCE_BYTES = 8
CORE_INPUT_BYTES = 16
CORE_CONST_BYTES = 16
CORE_OUTPUT_BYTES = 64
HSALSA20_OUTPUT_BYTES = 32

_MASK = 0xFFFFFFFF
_COUNTER_MASK = (1 << 64) - 1
_ROUNDS = 20


def _rotl(value: int, count: int) -> int:
    value &= _MASK
    return ((value << count) | (value >> (32 - count))) & _MASK


def _require(name: str, value: bytes, size: int) -> bytes:
    data = bytes(value)
    if len(data) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(data)}")
    return data


def _double_rounds(inp: bytes, key: bytes, const: bytes):
    """Run the Salsa20 rounds; return final words, initial words, const and input words."""
    c = struct.unpack("<4I", _require("const", const, CORE_CONST_BYTES))
    k = struct.unpack("<8I", _require("key", key, KEY_BYTES))
    n = struct.unpack("<4I", _require("input", inp, CORE_INPUT_BYTES))

    x = [c[0], *k[:4], c[1], *n, c[2], *k[4:], c[3]]
    initial = list(x)

    for _ in range(_ROUNDS):
        w = [0] * 16
        for j in range(4):
            t = [x[(5 * j + 4 * m) % 16] for m in range(4)]
            t[1] ^= _rotl(t[0] + t[3], 7)
            t[2] ^= _rotl(t[1] + t[0], 9)
            t[3] ^= _rotl(t[2] + t[1], 13)
            t[0] ^= _rotl(t[3] + t[2], 18)
            for m, word in enumerate(t):
                w[4 * j + (j + m) % 4] = word
        x = w

    return x, initial, c, n


def core_salsa20(inp: bytes, key: bytes, const: bytes) -> bytes:
    """Salsa20 core: 16-byte input, 32-byte key, 16-byte constant to 64 bytes."""
    x, initial, _, _ = _double_rounds(inp, key, const)
    return struct.pack("<16I", *((a + b) & _MASK for a, b in zip(x, initial)))


def core_hsalsa20(inp: bytes, key: bytes, const: bytes) -> bytes:
    """HSalsa20 core: derive a 32-byte subkey from a 16-byte input and a key."""
    x, initial, c, n = _double_rounds(inp, key, const)
    z = [(a + b) & _MASK for a, b in zip(x, initial)]
    words = [(z[5 * i] - c[i]) & _MASK for i in range(4)]
    words += [(z[6 + i] - n[i]) & _MASK for i in range(4)]
    return struct.pack("<8I", *words)


def stream_salsa20_xor(message: bytes, nonce: bytes, key: bytes) -> bytes:
    """XOR a message with the Salsa20 keystream for an 8-byte nonce."""
    nonce = _require("nonce", nonce, SALSA20_NONCE_BYTES)
    key = _require("key", key, KEY_BYTES)
    message = bytes(message)
    out = bytearray()
    for block_index, offset in enumerate(range(0, len(message), CORE_OUTPUT_BYTES)):
        counter = (block_index & _COUNTER_MASK).to_bytes(8, "little")
        keystream = core_salsa20(nonce + counter, key, SIGMA)
        chunk = message[offset:offset + CORE_OUTPUT_BYTES]
        out.extend(a ^ b for a, b in zip(chunk, keystream))
    return bytes(out)


def stream_salsa20(length: int, nonce: bytes, key: bytes) -> bytes:
    """Return ``length`` bytes of Salsa20 keystream."""
    if length < 0:
        raise ValueError("length must not be negative")
    return stream_salsa20_xor(bytes(length), nonce, key)


def _subkey(nonce: bytes, key: bytes) -> tuple[bytes, bytes]:
    nonce = _require("nonce", nonce, NONCE_BYTES)
    return core_hsalsa20(nonce[:16], key, SIGMA), nonce[16:]


def stream(length: int, nonce: bytes, key: bytes) -> bytes:
    """Return ``length`` bytes of XSalsa20 keystream for a 24-byte nonce."""
    subkey, tail = _subkey(nonce, key)
    return stream_salsa20(length, tail, subkey)


def stream_xor(message: bytes, nonce: bytes, key: bytes) -> bytes:
    """XOR a message with the XSalsa20 keystream for a 24-byte nonce."""
    subkey, tail = _subkey(nonce, key)
    return stream_salsa20_xor(message, tail, subkey)