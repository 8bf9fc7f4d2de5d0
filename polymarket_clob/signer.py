"""
Signer capability.

The trading core only needs two things from a wallet: the account address
and a recoverable signature over a 32-byte digest. Anything that provides
them (a local key, a hardware wallet bridge, a remote KMS) can be plugged
in as a ``Signer``.
"""

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .errors import SigningError

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 65


@runtime_checkable
class Signer(Protocol):
    """Produces recoverable ECDSA signatures over raw digests."""

    @property
    def address(self) -> str:
        """Checksummed account address."""
        ...

    async def sign_digest(self, digest: bytes) -> bytes:
        """Return ``r || s || v`` (65 bytes, v in {27, 28}) over ``digest``."""
        ...


class LocalSigner:
    """
    Signer backed by an in-memory private key.

    The key lives only inside the ``LocalAccount``; it is never logged or
    persisted. Pass ``serialize=True`` to force one signature at a time.
    """

    def __init__(self, account: LocalAccount, serialize: bool = False):
        self._account = account
        self.serialize = serialize
        # One lock per event loop, created on first use inside it
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_key(cls, private_key: str, serialize: bool = False) -> "LocalSigner":
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise SigningError(f"invalid private key: {type(e).__name__}") from e
        logger.debug(f"Loaded local signer for {account.address}")
        return cls(account, serialize=serialize)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_digest(self, digest: bytes) -> bytes:
        if not self.serialize:
            return self._sign(digest)
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        async with self._lock:
            return self._sign(digest)

    def _sign(self, digest: bytes) -> bytes:
        if len(digest) != 32:
            raise SigningError(f"digest must be 32 bytes, got {len(digest)}")
        try:
            signed = self._account.unsafe_sign_hash(digest)
        except Exception as e:
            raise SigningError(f"local key failed to sign: {e}") from e
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"


def check_signature(signature: bytes) -> bytes:
    """Validate the shape of a signer's output."""
    if not isinstance(signature, (bytes, bytearray)):
        raise SigningError(f"signer returned {type(signature).__name__}, expected bytes")
    if len(signature) != SIGNATURE_LENGTH:
        raise SigningError(
            f"signer returned {len(signature)} bytes, expected {SIGNATURE_LENGTH}"
        )
    return bytes(signature)
