"""Pure-Python NaCl primitives: Salsa20, Poly1305, Curve25519 and Ed25519."""

__all__ = ["box", "onetimeauth", "sign", "stream"]