"""Utility functions for the Hybrid DEX program module.

Integers are little-endian fixed width, strings and options follow Borsh
(the encoding Anchor programs use for instruction arguments and accounts).
"""

import struct
from typing import Optional

from solders.pubkey import Pubkey

from .constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

U128_MAX = (1 << 128) - 1


def encode_u8(value: int) -> bytes:
    """Encode an unsigned 8-bit integer.

    Raises:
        ValueError: If value is out of range [0, 255]
    """
    if not 0 <= value <= 255:
        raise ValueError(f"u8 value out of range: {value} (must be 0-255)")
    return struct.pack("<B", value)


def encode_u32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer (little-endian).

    Raises:
        ValueError: If value is out of range [0, 4294967295]
    """
    if not 0 <= value <= 4294967295:
        raise ValueError(f"u32 value out of range: {value} (must be 0-4294967295)")
    return struct.pack("<I", value)


def encode_u64(value: int) -> bytes:
    """Encode an unsigned 64-bit integer (little-endian).

    Raises:
        ValueError: If value is out of range [0, 2^64-1]
    """
    if not 0 <= value <= 18446744073709551615:
        raise ValueError(f"u64 value out of range: {value} (must be 0-18446744073709551615)")
    return struct.pack("<Q", value)


def encode_i64(value: int) -> bytes:
    """Encode a signed 64-bit integer (little-endian).

    Raises:
        ValueError: If value is out of range [-2^63, 2^63-1]
    """
    if not -9223372036854775808 <= value <= 9223372036854775807:
        raise ValueError(f"i64 value out of range: {value}")
    return struct.pack("<q", value)


def encode_u128(value: int) -> bytes:
    """Encode an unsigned 128-bit integer (little-endian)."""
    if not 0 <= value <= U128_MAX:
        raise ValueError(f"u128 value out of range: {value}")
    return value.to_bytes(16, "little")


def encode_le_uint(value: int, width: int) -> bytes:
    """Encode an unsigned integer as ``width`` little-endian bytes."""
    if value < 0 or value >= 1 << (8 * width):
        raise ValueError(f"value {value} does not fit in {width} bytes")
    return value.to_bytes(width, "little")


def decode_u8(data: bytes, offset: int = 0) -> int:
    """Decode an unsigned 8-bit integer."""
    return struct.unpack_from("<B", data, offset)[0]


def decode_u32(data: bytes, offset: int = 0) -> int:
    """Decode an unsigned 32-bit integer (little-endian)."""
    return struct.unpack_from("<I", data, offset)[0]


def decode_u64(data: bytes, offset: int = 0) -> int:
    """Decode an unsigned 64-bit integer (little-endian)."""
    return struct.unpack_from("<Q", data, offset)[0]


def decode_i64(data: bytes, offset: int = 0) -> int:
    """Decode a signed 64-bit integer (little-endian)."""
    return struct.unpack_from("<q", data, offset)[0]


def decode_u128(data: bytes, offset: int = 0) -> int:
    """Decode an unsigned 128-bit integer (little-endian)."""
    if offset + 16 > len(data):
        raise ValueError(f"Not enough bytes for u128 at offset {offset}")
    return int.from_bytes(data[offset : offset + 16], "little")


def decode_pubkey(data: bytes, offset: int = 0) -> Pubkey:
    """Decode a Pubkey from 32 bytes.

    Raises:
        ValueError: If not enough bytes available for Pubkey
    """
    if offset + 32 > len(data):
        raise ValueError(
            f"Not enough bytes for Pubkey at offset {offset}: "
            f"need 32 bytes, have {len(data) - offset}"
        )
    return Pubkey.from_bytes(data[offset : offset + 32])


def encode_string(s: str) -> bytes:
    """Encode a Borsh string.

    Format: [length (4 bytes LE)][utf-8 bytes]
    """
    encoded = s.encode("utf-8")
    return encode_u32(len(encoded)) + encoded


def encode_string_fixed(s: str, max_len: int) -> bytes:
    """Encode a string as fixed-length with null padding."""
    encoded = s.encode("utf-8")
    if len(encoded) > max_len:
        raise ValueError(f"String too long: {len(encoded)} > {max_len}")
    return encoded + b"\x00" * (max_len - len(encoded))


def decode_string_fixed(data: bytes, offset: int, length: int) -> str:
    """Decode a null-padded fixed-length UTF-8 string, trimming the padding.

    Raises:
        UnicodeDecodeError: If the bytes are not valid UTF-8
    """
    return data[offset : offset + length].rstrip(b"\x00").decode("utf-8")


def encode_option_u64(value: Optional[int]) -> bytes:
    """Encode a Borsh ``Option<u64>``: a 0 tag, or a 1 tag followed by the value."""
    if value is None:
        return b"\x00"
    return b"\x01" + encode_u64(value)


def get_associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Pubkey:
    """Derive the associated token account address for a wallet and mint.

    Owners may themselves be program addresses (market vaults are owned by
    the market PDA).
    """
    seeds = [
        bytes(owner),
        bytes(token_program_id),
        bytes(mint),
    ]
    pda, _ = Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM_ID)
    return pda
