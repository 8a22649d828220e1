"""Amount scaling utilities for the Hybrid DEX SDK.

Human amounts ("1.5") are scaled by the asset's decimals into the raw u64
integers the program stores (1.5 with 9 decimals -> 1_500_000_000).
"""

from decimal import Decimal, InvalidOperation
from typing import Union

MAX_U64 = 2**64 - 1


class ScalingError(Exception):
    """Error during amount scaling."""

    pass


def scale_amount(value: Union[str, int, Decimal], decimals: int) -> int:
    """Scale a human-readable amount to a raw on-chain amount.

    Args:
        value: Amount as a decimal string (e.g., "0.55")
        decimals: Decimals of the asset the amount is denominated in

    Returns:
        The raw amount as an integer

    Raises:
        ScalingError: If the input is not a positive number, has more
            fractional digits than ``decimals`` allows, or overflows u64
    """
    if decimals < 0:
        raise ScalingError(f"Decimals must be non-negative, got {decimals}")
    try:
        value_d = Decimal(value)
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ScalingError(f"Invalid decimal input {value!r}: {e}")

    if not value_d.is_finite():
        raise ScalingError(f"Amount must be finite, got {value}")
    if value_d <= 0:
        raise ScalingError(f"Amount must be positive, got {value}")

    raw = value_d.scaleb(decimals)
    if raw != raw.to_integral_value():
        raise ScalingError(
            f"Amount {value} has more than {decimals} fractional digits"
        )

    raw_int = int(raw)
    if raw_int > MAX_U64:
        raise ScalingError(f"Amount overflow: {raw_int}")

    return raw_int


def unscale_amount(raw: int, decimals: int) -> Decimal:
    """Convert a raw on-chain amount back to a human-readable Decimal."""
    if decimals < 0:
        raise ScalingError(f"Decimals must be non-negative, got {decimals}")
    return Decimal(raw).scaleb(-decimals)


def format_amount(raw: int, decimals: int) -> str:
    """Format a raw amount for display without exponent notation."""
    return f"{unscale_amount(raw, decimals).normalize():f}"
