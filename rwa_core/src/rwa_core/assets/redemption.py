"""Redemption: burn tokens back to the issuer for a share of the asset.

The holder pays ``token_amount`` to the issuer, which retires the tokens.
The released share of the asset's value is proportional to the share of the
total supply burned. An asset is marked REDEEMED when a single redemption
covers the whole supply; partial redemptions are not accumulated.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from rwa_core.common.errors import (
    AssetNotFoundError,
    InsufficientTokensError,
    InvalidInputError,
    RedemptionFailedError,
    TransferFailedError,
)
from rwa_core.common.types import to_decimal, utc_now
from rwa_core.assets.models import AssetStatus, RedemptionResult

if TYPE_CHECKING:
    from rwa_core.assets.registry import AssetRegistry
    from rwa_core.assets.transfer import TransferCoordinator

log = structlog.get_logger()

_HUNDRED = Decimal(100)


class RedemptionEngine:
    """Burns tokens and tracks the asset's redemption state."""

    def __init__(self, registry: AssetRegistry, transfers: TransferCoordinator) -> None:
        self.registry = registry
        self.transfers = transfers

    async def redeem(
        self,
        asset_id: str,
        wallet_id: str,
        token_amount: Decimal | int | str,
    ) -> RedemptionResult:
        """Redeem ``token_amount`` tokens of an asset held by ``wallet_id``.

        Raises:
            InvalidInputError: Non-positive amount.
            AssetNotFoundError: Unknown or not tokenized asset.
            InsufficientTokensError: Holder balance below ``token_amount``.
            RedemptionFailedError: The burn payment failed (wraps the cause).
        """
        amount = to_decimal(token_amount, "token_amount")
        if amount <= 0:
            raise InvalidInputError("token_amount must be positive")

        async with self.registry.asset_locks.hold(asset_id):
            asset = self.registry.get(asset_id)
            record = asset.tokenization
            if asset.status != AssetStatus.TOKENIZED or record is None:
                raise AssetNotFoundError(asset_id, "Asset not found or not tokenized")

            holding = await self.transfers.get_balance(
                wallet_id, record.currency_code, record.issuer_address
            )
            if holding.balance < amount:
                raise InsufficientTokensError(required=amount, available=holding.balance)

            share = amount / record.total_supply
            percentage = share * _HUNDRED
            released = asset.value * amount / record.total_supply

            try:
                burn = await self.transfers.transfer(
                    wallet_id,
                    record.issuer_address,
                    record.currency_code,
                    record.issuer_address,
                    amount,
                )
            except TransferFailedError as exc:
                log.error(
                    "Redemption failed",
                    asset_id=asset_id,
                    wallet_id=wallet_id,
                    error_code=exc.code,
                )
                raise RedemptionFailedError(exc.cause) from exc

            # The burn may have changed the supply record; continue from the stored copy.
            asset = self.registry.get(asset_id)
            if amount >= record.total_supply:
                asset = self.registry.transition(
                    asset,
                    AssetStatus.REDEEMED,
                    redeemed_at=utc_now(),
                    redeemed_by=holding.address,
                )

        log.info(
            "Asset redemption processed",
            asset_id=asset_id,
            wallet_id=wallet_id,
            token_amount=str(amount),
            percentage=str(percentage),
            status=asset.status.value,
        )
        return RedemptionResult(
            asset_id=asset_id,
            transaction_hash=burn.transaction_hash,
            token_amount=amount,
            redemption_percentage=percentage,
            asset_value_released=released,
            status=asset.status,
            redeemer_address=holding.address,
            redeemed_by=asset.redeemed_by,
        )
