"""Crockford base-32 check encoding for Stacks addresses.

An address is ``"S" + c32[version] + c32(hash160 + checksum)`` where the
checksum is the first four bytes of ``sha256(sha256(version + hash160))``.
The same 20-byte hash yields a testnet address (version 26, ``ST...``) and a
mainnet address (version 22, ``SP...``); the relay matches wallets under
both encodings.
"""
from __future__ import annotations

import hashlib

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

TESTNET_VERSION = 26
MAINNET_VERSION = 22

NETWORK_VERSIONS = {
    "testnet": TESTNET_VERSION,
    "mainnet": MAINNET_VERSION,
}


class C32Error(ValueError):
    """Raised for malformed c32 input or a checksum mismatch."""


def _checksum(version: int, data: bytes) -> bytes:
    digest = hashlib.sha256(hashlib.sha256(bytes([version]) + data).digest()).digest()
    return digest[:4]


def c32_encode(data: bytes) -> str:
    """Encode bytes to c32, keeping one ``0`` per leading zero byte."""
    value = int.from_bytes(data, "big")
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 32)
        digits.append(C32_ALPHABET[rem])
    leading = len(data) - len(data.lstrip(b"\x00"))
    return "0" * leading + "".join(reversed(digits))


def _normalize(text: str) -> str:
    return text.upper().replace("O", "0").replace("L", "1").replace("I", "1")


def c32_decode(text: str) -> bytes:
    text = _normalize(text)
    value = 0
    for char in text:
        idx = C32_ALPHABET.find(char)
        if idx < 0:
            raise C32Error(f"invalid c32 character: {char!r}")
        value = value * 32 + idx
    leading = len(text) - len(text.lstrip("0"))
    body = value.to_bytes((value.bit_length() + 7) // 8, "big") if value else b""
    return b"\x00" * leading + body


def c32check_encode(version: int, data: bytes) -> str:
    if not 0 <= version < 32:
        raise C32Error(f"invalid version {version}: must be in [0, 32)")
    return C32_ALPHABET[version] + c32_encode(data + _checksum(version, data))


def c32check_decode(text: str) -> tuple[int, bytes]:
    text = _normalize(text)
    if len(text) < 2:
        raise C32Error("c32check string too short")
    version = C32_ALPHABET.find(text[0])
    if version < 0:
        raise C32Error(f"invalid version character: {text[0]!r}")
    raw = c32_decode(text[1:])
    if len(raw) < 4:
        raise C32Error("c32check payload too short")
    data, checksum = raw[:-4], raw[-4:]
    if _checksum(version, data) != checksum:
        raise C32Error("checksum mismatch")
    return version, data


def c32address(version: int, hash160: bytes | str) -> str:
    """Build an address from a version byte and a 20-byte hash (bytes or hex)."""
    if isinstance(hash160, str):
        try:
            hash160 = bytes.fromhex(hash160)
        except ValueError as exc:
            raise C32Error(f"invalid hash160 hex: {exc}") from exc
    if len(hash160) != 20:
        raise C32Error(f"hash160 must be 20 bytes, got {len(hash160)}")
    return "S" + c32check_encode(version, hash160)


def c32address_decode(address: str) -> tuple[int, bytes]:
    """Split an address into ``(version, hash160)``."""
    if not address or len(address) <= 5:
        raise C32Error("invalid address: too short")
    if address[0].upper() != "S":
        raise C32Error("invalid address: must start with 'S'")
    return c32check_decode(address[1:])


def convert_address(address: str, network: str) -> str:
    """Re-encode *address* for ``testnet`` or ``mainnet``.

    Any network name other than ``mainnet`` selects the testnet version.
    """
    _, hash160 = c32address_decode(address)
    version = MAINNET_VERSION if network == "mainnet" else TESTNET_VERSION
    return c32address(version, hash160)


def address_variants(address: str) -> tuple[str, str]:
    """Return ``(testnet, mainnet)`` encodings of *address*."""
    _, hash160 = c32address_decode(address)
    return c32address(TESTNET_VERSION, hash160), c32address(MAINNET_VERSION, hash160)
