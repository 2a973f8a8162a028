"""Movement of issued balances between ledger accounts.

Supply accounting rule: a transfer whose sender is the issuer moves tokens
out of the issuer's undistributed supply, so ``available_supply`` of the
matching tokenization record drops by the transferred amount (never below
zero). Transfers between holders leave the record untouched. The record is
only updated after the ledger confirmed the payment.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog

from rwa_core.common.errors import InvalidInputError, RWAError, TransferFailedError
from rwa_core.common.types import (
    IssuedAmount,
    to_decimal,
    validate_address,
    validate_currency_code,
)
from rwa_core.assets.models import TokenBalance, TransferResult, TrustLineResult
from rwa_core.ledger.codec import amount_to_wire

if TYPE_CHECKING:
    from rwa_core.assets.registry import AssetRegistry
    from rwa_core.ledger.client import LedgerClient
    from rwa_core.ledger.protocol import SigningGateway

log = structlog.get_logger()


def _positive(value: Any, field_name: str) -> Decimal:
    amount = to_decimal(value, field_name)
    if amount <= 0:
        raise InvalidInputError(f"{field_name} must be positive")
    return amount


class TransferCoordinator:
    """Issued-currency payments, balances and trust lines."""

    def __init__(
        self,
        registry: AssetRegistry,
        wallets: SigningGateway,
        ledger: LedgerClient,
    ) -> None:
        self.registry = registry
        self.wallets = wallets
        self.ledger = ledger

    async def transfer(
        self,
        from_wallet_id: str,
        to_address: str,
        currency_code: str,
        issuer_address: str,
        amount: Decimal | int | str,
    ) -> TransferResult:
        """Pay ``amount`` of ``currency_code/issuer_address`` to ``to_address``.

        Raises:
            InvalidInputError: Bad address, currency code or amount.
            WalletNotFoundError / WalletNotActivatedError: Sender cannot sign.
            TransferFailedError: Ledger rejected or was unreachable (wraps cause).
        """
        destination = validate_address(to_address, "to_address")
        issuer = validate_address(issuer_address, "issuer_address")
        currency = validate_currency_code(currency_code)
        value = _positive(amount, "amount")

        signer = await self.wallets.get_signer(from_wallet_id)
        payment = {
            "TransactionType": "Payment",
            "Account": signer.address,
            "Destination": destination,
            "Amount": amount_to_wire(IssuedAmount(currency=currency, issuer=issuer, value=value)),
        }
        try:
            result = await self.ledger.submit(payment, signer)
        except RWAError as exc:
            log.error(
                "Transfer failed",
                from_wallet=from_wallet_id,
                to=destination,
                currency=currency,
                error_code=exc.code,
                result_code=exc.result_code,
            )
            raise TransferFailedError(exc) from exc

        available = None
        if signer.address == issuer:
            available = self._consume_supply(currency, issuer, value)

        log.info(
            "Tokens transferred",
            from_wallet=from_wallet_id,
            to=destination,
            currency=currency,
            amount=str(value),
            tx_hash=result.tx_hash,
        )
        return TransferResult(
            transaction_hash=result.tx_hash,
            ledger_index=result.ledger_index,
            from_wallet_id=from_wallet_id,
            from_address=signer.address,
            to_address=destination,
            currency_code=currency,
            issuer_address=issuer,
            amount=value,
            available_supply=available,
        )

    def _consume_supply(self, currency: str, issuer: str, value: Decimal) -> Decimal | None:
        record = self.registry.load_record(currency, issuer)
        if record is None:
            log.warning("Issuer transfer for untracked currency", currency=currency, issuer=issuer)
            return None

        asset = self.registry.get(record.asset_id)
        tokenization = asset.tokenization or record
        remaining = tokenization.available_supply - value
        if remaining < 0:
            # The ledger accepted more than the record says is undistributed.
            log.error(
                "Available supply invariant violated",
                asset_id=asset.id,
                currency=currency,
                issuer=issuer,
                available_supply=str(tokenization.available_supply),
                amount=str(value),
            )
            remaining = Decimal(0)
        tokenization.available_supply = remaining
        asset.tokenization = tokenization
        self.registry.save(asset)

        log.info(
            "Available supply updated",
            asset_id=asset.id,
            currency=currency,
            available_supply=str(tokenization.available_supply),
        )
        return tokenization.available_supply

    async def get_balance(
        self,
        wallet_id: str,
        currency_code: str,
        issuer_address: str,
    ) -> TokenBalance:
        """Balance of one issued currency held by a wallet (0 without a line)."""
        issuer = validate_address(issuer_address, "issuer_address")
        currency = validate_currency_code(currency_code)
        wallet = await self.wallets.get_wallet(wallet_id)

        balance = TokenBalance(
            wallet_id=wallet_id,
            address=wallet.address,
            currency_code=currency,
            issuer_address=issuer,
        )
        for line in await self.ledger.trust_lines(wallet.address):
            if line.currency == currency and line.issuer == issuer:
                return balance.model_copy(update={"balance": line.balance, "limit": line.limit})
        return balance

    async def establish_trust_line(
        self,
        wallet_id: str,
        currency_code: str,
        issuer_address: str,
        limit: Decimal | int | str,
    ) -> TrustLineResult:
        """Let a wallet hold up to ``limit`` of an issued currency."""
        issuer = validate_address(issuer_address, "issuer_address")
        currency = validate_currency_code(currency_code)
        value = _positive(limit, "limit")

        signer = await self.wallets.get_signer(wallet_id)
        trust_set = {
            "TransactionType": "TrustSet",
            "Account": signer.address,
            "LimitAmount": amount_to_wire(
                IssuedAmount(currency=currency, issuer=issuer, value=value)
            ),
        }
        result = await self.ledger.submit(trust_set, signer)

        log.info(
            "Trust line established",
            wallet_id=wallet_id,
            currency=currency,
            issuer=issuer,
            limit=str(value),
        )
        return TrustLineResult(
            transaction_hash=result.tx_hash,
            wallet_id=wallet_id,
            address=signer.address,
            currency_code=currency,
            issuer_address=issuer,
            limit=value,
        )
