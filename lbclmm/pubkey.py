"""Ed25519 public keys and program-derived addresses."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable

PUBKEY_BYTES = 32
MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_INDEX = {char: value for value, char in enumerate(_ALPHABET)}

_P = 2**255 - 19
_D = (-121665 * pow(121666, -1, _P)) % _P


def _b58encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(_ALPHABET[remainder])
    leading = len(data) - len(data.lstrip(b"\0"))
    return "1" * leading + "".join(reversed(digits))


def _b58decode(text: str) -> bytes:
    number = 0
    for char in text:
        try:
            number = number * 58 + _INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character: {char!r}") from None
    leading = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    return b"\0" * leading + body


def _decompresses(data: bytes) -> bool:
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    if u == 0:
        return True
    if v == 0:
        return False
    x_squared = u * pow(v, -1, _P) % _P
    return pow(x_squared, (_P - 1) // 2, _P) == 1


@dataclass(frozen=True, order=True)
class Pubkey:
    """A 32-byte public key; the default is all zeros."""

    data: bytes = bytes(PUBKEY_BYTES)

    def __post_init__(self) -> None:
        if isinstance(self.data, (bytearray, memoryview)):
            object.__setattr__(self, "data", bytes(self.data))
        if not isinstance(self.data, bytes):
            raise TypeError("public key must be bytes")
        if len(self.data) != PUBKEY_BYTES:
            raise ValueError(f"public key must be {PUBKEY_BYTES} bytes, got {len(self.data)}")

    @classmethod
    def from_base58(cls, text: str) -> Pubkey:
        """Parse a base58-encoded key."""
        raw = _b58decode(text)
        if len(raw) != PUBKEY_BYTES:
            raise ValueError(f"decoded key has {len(raw)} bytes, expected {PUBKEY_BYTES}")
        return cls(raw)

    def is_on_curve(self) -> bool:
        """Whether the bytes decode to a point on the ed25519 curve."""
        return _decompresses(self.data)

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        return _b58encode(self.data)


def _check_seeds(seeds: list[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"at most {MAX_SEEDS} seeds are allowed")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"seed longer than {MAX_SEED_LEN} bytes")


def _hash_address(seeds: list[bytes], program_id: Pubkey) -> Pubkey:
    digest = hashlib.sha256()
    for seed in seeds:
        digest.update(seed)
    digest.update(bytes(program_id))
    digest.update(PDA_MARKER)
    return Pubkey(digest.digest())


def create_program_address(seeds: Iterable[bytes], program_id: Pubkey) -> Pubkey:
    """Derive the address for exactly these seeds; it must lie off the curve."""
    seed_list = [bytes(seed) for seed in seeds]
    _check_seeds(seed_list)
    address = _hash_address(seed_list, program_id)
    if address.is_on_curve():
        raise ValueError("invalid seeds: the address lies on the ed25519 curve")
    return address


def find_program_address(seeds: Iterable[bytes], program_id: Pubkey) -> tuple[Pubkey, int]:
    """Find the off-curve address with the highest bump seed, returning it and the bump."""
    seed_list = [bytes(seed) for seed in seeds]
    _check_seeds(seed_list + [b"\xff"])
    for bump in range(255, 0, -1):
        address = _hash_address(seed_list + [bytes([bump])], program_id)
        if not address.is_on_curve():
            return address, bump
    raise ValueError("unable to find a viable program address bump seed")