"""Session context for the Hybrid DEX SDK.

A session bundles everything an operation needs to reach the cluster: the
RPC connection, the signing keypair, the program id, the market seed width
and the commitment level. It is passed explicitly into the client.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .constants import DEFAULT_MARKET_SEED_WIDTH, PROGRAM_ID
from .errors import HybridDexError
from .pda import encode_market_seed

if TYPE_CHECKING:
    from ..config import ClientConfig

logger = logging.getLogger(__name__)


class KeypairError(HybridDexError):
    """Raised when a keypair file cannot be loaded."""

    pass


def load_keypair(path: Union[str, Path]) -> Keypair:
    """Load a keypair from a Solana CLI keyfile (JSON array of 64 bytes).

    Raises:
        KeypairError: If the file is missing or not a valid keypair
    """
    path = Path(path).expanduser()
    try:
        with open(path) as f:
            secret = json.load(f)
    except OSError as e:
        raise KeypairError(f"Cannot read keypair file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise KeypairError(f"Keypair file {path} is not JSON: {e}") from e

    if not isinstance(secret, list) or len(secret) != 64:
        raise KeypairError(f"Keypair file {path} must hold a JSON array of 64 bytes")
    try:
        return Keypair.from_bytes(bytes(secret))
    except (ValueError, TypeError) as e:
        raise KeypairError(f"Invalid keypair in {path}: {e}") from e


def resolve_pubkey(value: Union[str, Pubkey]) -> Pubkey:
    """Resolve a base58 address or the path of a keyfile to a public key."""
    if isinstance(value, Pubkey):
        return value
    try:
        return Pubkey.from_string(value)
    except ValueError:
        pass
    return load_keypair(value).pubkey()


@dataclass
class Session:
    """Connection, signer and program settings shared by client operations.

    ``signer`` may be None for read-only use; operations that need it call
    :meth:`require_signer`.
    """

    connection: AsyncClient
    signer: Optional[Keypair] = None
    program_id: Pubkey = field(default_factory=lambda: PROGRAM_ID)
    market_seed_width: int = DEFAULT_MARKET_SEED_WIDTH
    commitment: Commitment = Confirmed

    def __post_init__(self):
        encode_market_seed(0, self.market_seed_width)

    @classmethod
    def from_config(cls, config: "ClientConfig", load_signer: bool = True) -> "Session":
        """Open a connection and load the signer described by ``config``."""
        signer = load_keypair(config.expanded_keypair_path) if load_signer else None
        connection = AsyncClient(config.rpc_url, commitment=config.commitment)
        logger.debug(
            f"Session for {config.program_id} on {config.rpc_url} "
            f"(market seed width {config.market_seed_width})"
        )
        return cls(
            connection=connection,
            signer=signer,
            program_id=config.program_id,
            market_seed_width=config.market_seed_width,
            commitment=config.commitment,
        )

    def require_signer(self) -> Keypair:
        """Return the signer.

        Raises:
            KeypairError: If the session was opened without one
        """
        if self.signer is None:
            raise KeypairError("This operation needs a signer keypair")
        return self.signer

    @property
    def identity(self) -> Pubkey:
        """Public key of the signer."""
        return self.require_signer().pubkey()

    async def close(self) -> None:
        """Close the RPC connection."""
        await self.connection.close()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
