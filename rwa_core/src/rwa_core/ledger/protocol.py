"""Contracts for the ledger network and the signing service.

Both collaborators live outside this package. The orchestration layer only
depends on the protocols defined here:

- ``LedgerGateway``: submits transactions and answers state queries
- ``SigningGateway``: resolves platform wallets and hands out signers
- ``Signer``: signs a prepared transaction for one account

Transactions travel as ledger-JSON dictionaries (``TransactionType``,
``Account``, ``Amount``...), amounts in wire format (drops strings for the
native currency, ``{currency, issuer, value}`` objects otherwise). The codec
in ``rwa_core.ledger.codec`` converts between wire format and ``Amount``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field


# ==============================================================================
# Transport Exceptions
# ==============================================================================
class LedgerConnectionError(Exception):
    """Transient transport failure raised by a LedgerGateway.

    Attributes:
        submitted: True when the transaction may already have reached the
            network. Such submissions are never retried blindly.
    """

    def __init__(self, message: str, *, submitted: bool = False) -> None:
        self.submitted = submitted
        super().__init__(message)


# ==============================================================================
# Models
# ==============================================================================
class SubmissionResult(BaseModel):
    """Outcome of a validated transaction."""

    model_config = {"frozen": True}

    tx_hash: str
    ledger_index: int | None = None
    result_code: str
    sequence: int | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.result_code == "tesSUCCESS"


class AccountInfo(BaseModel):
    """Validated account root state."""

    model_config = {"frozen": True}

    address: str
    balance: Decimal = Field(description="Native balance in whole units")
    sequence: int
    owner_count: int = 0


class TrustLine(BaseModel):
    """One credit line as seen from the account that holds it."""

    model_config = {"frozen": True}

    currency: str
    issuer: str
    balance: Decimal = Decimal(0)
    limit: Decimal = Decimal(0)


class WalletInfo(BaseModel):
    """Platform wallet record resolved by the signing gateway."""

    model_config = {"frozen": True}

    wallet_id: str
    address: str
    activated: bool = False


# ==============================================================================
# Protocols
# ==============================================================================
@runtime_checkable
class Signer(Protocol):
    """Signing capability for a single account."""

    @property
    def address(self) -> str:
        ...

    def sign(self, transaction: Any) -> Any:
        """Return a signed copy of an autofilled transaction."""
        ...


@runtime_checkable
class SigningGateway(Protocol):
    """Owns key material; never exposes it."""

    async def get_wallet(self, wallet_id: str) -> WalletInfo:
        """Resolve a wallet.

        Raises:
            WalletNotFoundError: Unknown wallet id.
        """
        ...

    async def get_signer(self, wallet_id: str) -> Signer:
        """Return a signer for an activated wallet.

        Raises:
            WalletNotFoundError: Unknown wallet id.
            WalletNotActivatedError: No confirmed ledger presence.
        """
        ...


@runtime_checkable
class LedgerGateway(Protocol):
    """Connectivity to the ledger network.

    Implementations raise ``LedgerConnectionError`` for transport problems and
    report everything else through ``SubmissionResult.result_code``.
    """

    async def submit_transaction(
        self,
        transaction: dict[str, Any],
        signer: Signer,
    ) -> SubmissionResult:
        """Autofill, sign, submit and wait for validation."""
        ...

    async def get_account_info(self, address: str) -> AccountInfo | None:
        """Account root, or None if the account does not exist."""
        ...

    async def get_account_balance(self, address: str) -> Decimal:
        """Native balance in whole units (0 for unknown accounts)."""
        ...

    async def get_trust_lines(self, address: str) -> list[TrustLine]:
        ...

    async def get_order_book(
        self,
        taker_gets: dict[str, str],
        taker_pays: dict[str, str],
        limit: int,
    ) -> list[dict[str, Any]]:
        """Offers for a book in ledger priority (best quality first).

        ``taker_gets`` / ``taker_pays`` are wire-format currency specs:
        ``{"currency": "XRP"}`` or ``{"currency": ..., "issuer": ...}``.
        """
        ...

    async def get_account_offers(self, address: str) -> list[dict[str, Any]]:
        ...
