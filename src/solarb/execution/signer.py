"""
Custodial key storage and transaction signing.

The custodial secret is decoded once, with strict validation, into a
solders Keypair. Decoding errors never include the secret itself.
"""

import logging
import re

import orjson
from pydantic import SecretStr
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from solarb.config.constants import SECRET_KEY_LENGTH
from solarb.core.errors import KeyFormatError, SigningError


logger = logging.getLogger(__name__)

_B58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")
_BYTE_RE = re.compile(r"^\d{1,3}$")


def _bytes_from_ints(items: list[object]) -> bytes:
    """Validate a list of byte values."""
    if len(items) != SECRET_KEY_LENGTH:
        raise KeyFormatError(
            f"Secret key must contain exactly {SECRET_KEY_LENGTH} bytes, got {len(items)}"
        )
    for position, item in enumerate(items):
        if isinstance(item, bool) or not isinstance(item, int):
            raise KeyFormatError(f"Secret key byte {position} is not an integer")
        if not 0 <= item <= 255:
            raise KeyFormatError(f"Secret key byte {position} is out of range 0-255")
    return bytes(items)  # type: ignore[arg-type]


def decode_secret_key(raw: str) -> bytes:
    """
    Decode custodial key material into its 64 raw bytes.

    Accepted formats:
    - Comma-separated decimal bytes: "12,250,3,..."
    - JSON byte array: "[12, 250, 3, ...]"
    - Base58 string

    Args:
        raw: Encoded secret.

    Returns:
        64-byte secret key.

    Raises:
        KeyFormatError: If the value is not exactly one of the formats
            above. The message never contains the secret.
    """
    value = raw.strip()
    if not value:
        raise KeyFormatError("Secret key is empty")

    if value.startswith("["):
        try:
            items = orjson.loads(value)
        except orjson.JSONDecodeError as e:
            raise KeyFormatError("Secret key JSON array is malformed") from e
        if not isinstance(items, list):
            raise KeyFormatError("Secret key JSON must be an array of bytes")
        return _bytes_from_ints(items)

    if "," in value:
        parts = [part.strip() for part in value.split(",")]
        if any(not _BYTE_RE.match(part) for part in parts):
            raise KeyFormatError("Secret key list must contain only decimal byte values")
        return _bytes_from_ints([int(part) for part in parts])

    if _B58_RE.match(value):
        # Keypair.from_base58_string panics on a wrong length; the 64-byte
        # signature codec reports it as ValueError instead.
        try:
            return bytes(Signature.from_string(value))
        except ValueError as e:
            raise KeyFormatError(
                f"Base58 secret key must decode to exactly {SECRET_KEY_LENGTH} bytes"
            ) from e

    raise KeyFormatError("Unsupported secret key format")


class KeyStore:
    """
    Holds the custodial keypair and signs transactions with it.

    Example:
        >>> store = KeyStore.from_secret(settings.custodial_secret_key)
        >>> store.sign(transaction)
    """

    __slots__ = ("_keypair",)

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: SecretStr | str) -> "KeyStore":
        """
        Build a key store from encoded key material.

        Raises:
            KeyFormatError: If the secret is malformed or not a valid
                ed25519 keypair.
        """
        raw = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        key_bytes = decode_secret_key(raw)
        try:
            keypair = Keypair.from_bytes(key_bytes)
        except (ValueError, TypeError) as e:
            raise KeyFormatError("Secret key bytes are not a valid ed25519 keypair") from e

        logger.info(f"Custodial key loaded: {keypair.pubkey()}")
        return cls(keypair)

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, transaction: Transaction) -> Transaction:
        """
        Sign a transaction in place with the custodial key.

        Raises:
            SigningError: If the key is not a required signer or the
                message cannot be signed.
        """
        try:
            transaction.sign([self._keypair], transaction.message.recent_blockhash)
        except Exception as e:
            raise SigningError(f"Failed to sign transaction: {type(e).__name__}") from e
        return transaction
