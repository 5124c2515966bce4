"""Ed25519 transaction authorization and actor lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from .storage import (
    EMPTY_ID,
    EMPTY_PUBLIC_KEY,
    PUBLIC_KEY_LEN,
    Database,
    InvalidBalanceError,
    add_balance,
    get_balance,
    prefix_balance_key,
    sub_balance,
)

SIGNATURE_LEN = 64


class InvalidSignatureError(ValueError):
    """Raised when a signature does not verify."""

    def __init__(self, message: str = "invalid signature") -> None:
        super().__init__(message)


@dataclass
class ED25519:
    """Authorization by an Ed25519 signature over the transaction bytes.

    Fees are always paid in the native asset (the empty ID).
    """

    signer: bytes
    signature: bytes

    # -1 at both ends means the authorization is always valid.
    valid_from: ClassVar[int] = -1
    valid_until: ClassVar[int] = -1

    def max_units(self, rules: Any) -> int:
        # Signatures are priced higher than their size.
        return PUBLIC_KEY_LEN + SIGNATURE_LEN * 5

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return self.valid_from, self.valid_until

    def state_keys(self) -> list[bytes]:
        return [prefix_balance_key(self.signer, EMPTY_ID)]

    def async_verify(self, msg: bytes) -> None:
        """Raise InvalidSignatureError unless ``signature`` signs ``msg``."""
        try:
            Ed25519PublicKey.from_public_bytes(bytes(self.signer)).verify(
                bytes(self.signature), bytes(msg)
            )
        except (InvalidSignature, ValueError) as exc:
            raise InvalidSignatureError() from exc

    def verify(self, rules: Any, db: Database, action: Any) -> int:
        # Nothing beyond the signature needs checking.
        return self.max_units(rules)

    def payer(self) -> bytes:
        return bytes(self.signer)

    def can_deduct(self, db: Database, amount: int) -> None:
        balance = get_balance(db, self.signer, EMPTY_ID)
        if balance < amount:
            raise InvalidBalanceError("invalid balance")

    def deduct(self, db: Database, amount: int) -> None:
        sub_balance(db, self.signer, EMPTY_ID, amount)

    def refund(self, db: Database, amount: int) -> None:
        add_balance(db, self.signer, EMPTY_ID, amount)


def get_actor(auth: Any) -> bytes:
    """Return the public key acting in a transaction, or the empty key."""
    if isinstance(auth, ED25519):
        return bytes(auth.signer)
    return EMPTY_PUBLIC_KEY


def get_signer(auth: Any) -> bytes:
    """Return the public key that signed a transaction, or the empty key."""
    if isinstance(auth, ED25519):
        return bytes(auth.signer)
    return EMPTY_PUBLIC_KEY