"""Shared utilities used by the program client and the CLI."""

from .scaling import ScalingError, format_amount, scale_amount, unscale_amount

__all__ = [
    "ScalingError",
    "format_amount",
    "scale_amount",
    "unscale_amount",
]
