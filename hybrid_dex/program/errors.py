"""Custom exceptions for the Hybrid DEX program module."""

from typing import Optional


class HybridDexError(Exception):
    """Base exception for all Hybrid DEX client errors."""

    pass


# ============================================================================
# Derivation
# ============================================================================


class InvalidSeedsError(HybridDexError):
    """Raised when seeds cannot be used for address derivation."""

    def __init__(self, message: str):
        super().__init__(f"Invalid seeds: {message}")


class NoValidBumpError(HybridDexError):
    """Raised when no bump in 255..0 yields an off-curve address."""

    def __init__(self, program_id: str):
        self.program_id = program_id
        super().__init__(
            f"No valid bump found for program address under {program_id}"
        )


# ============================================================================
# Decoding
# ============================================================================


class MalformedAccountError(HybridDexError):
    """Raised when account data does not match the expected layout."""

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(f"Malformed {kind} account: {message}")


class InvalidDiscriminatorError(MalformedAccountError):
    """Raised when account data carries another kind's discriminator."""

    def __init__(self, kind: str, expected: bytes, actual: bytes):
        self.expected = expected
        self.actual = actual
        super().__init__(
            kind, f"invalid discriminator: expected {expected!r}, got {actual!r}"
        )


# ============================================================================
# Local preconditions
# ============================================================================


class AccountNotFoundError(HybridDexError):
    """Raised when a prerequisite account is not found on-chain."""

    def __init__(
        self,
        address: str,
        kind: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.address = address
        self.kind = kind
        if message is None:
            message = f"{kind or 'Account'} account not found: {address}"
        super().__init__(message)


class OrderNotFoundError(AccountNotFoundError):
    """Raised when an order id is not present in a book."""

    def __init__(self, order_id: int, book: str):
        self.order_id = order_id
        super().__init__(
            book,
            kind="OpenedOrder",
            message=f"Order {order_id} not found in book {book}",
        )


class AccountExistsError(HybridDexError):
    """Raised when an account that must be created already exists."""

    def __init__(self, address: str, kind: str):
        self.address = address
        self.kind = kind
        super().__init__(f"{kind} account already exists: {address}")


class CapacityExceededError(HybridDexError):
    """Raised when a book or user order limit has been reached."""

    def __init__(self, what: str, count: int, limit: int):
        self.what = what
        self.count = count
        self.limit = limit
        super().__init__(f"{what} is full: {count} open orders (limit: {limit})")


class InvalidAmountError(HybridDexError):
    """Raised when a price, quantity or amount is out of range."""

    def __init__(self, message: str):
        super().__init__(f"Invalid amount: {message}")


class InvalidSideError(HybridDexError):
    """Raised when a side is unknown or does not match the target book."""

    def __init__(self, message: str):
        super().__init__(f"Invalid side: {message}")


class InvalidNameError(HybridDexError):
    """Raised when a market name does not fit the fixed-size field."""

    def __init__(self, name: str, max_len: int):
        self.name = name
        self.max_len = max_len
        super().__init__(
            f"Market name {name!r} is longer than {max_len} bytes"
        )


class UnauthorizedError(HybridDexError):
    """Raised when the caller is not the required admin, authority or owner.

    This is a fast-fail check only. The program re-checks authorization
    on-chain.
    """

    def __init__(self, caller: str, required: str):
        self.caller = caller
        self.required = required
        super().__init__(f"{caller} is not authorized: requires {required}")


# ============================================================================
# Remote
# ============================================================================


class RemoteRejectedError(HybridDexError):
    """Raised when the cluster or program rejects a submitted transaction.

    The RPC message is kept verbatim. A rejection may be caused by stale
    state (e.g. a sequence number consumed by a concurrent caller), so
    prerequisite accounts must be re-fetched before building a retry.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Transaction rejected: {message}")
