"""Asset registry: persistence, lookups and the status state machine.

Storage layout:
    asset:{id}                  -> Asset (with embedded TokenizationRecord)
    token:{currency}:{issuer}   -> TokenizationRecord (issuer-side index)
    asset:owner:{wallet_id}     -> list of asset ids, registration order

An asset and its tokenization record are always written together through
``save_atomic`` so the two projections never diverge.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Final

import structlog

from rwa_core.common.errors import (
    AlreadyRedeemedError,
    AlreadyTokenizedError,
    AssetNotFoundError,
    ConflictError,
    OwnerNotActivatedError,
)
from rwa_core.common.locks import KeyedLock
from rwa_core.common.types import utc_now, validate_model
from rwa_core.assets.models import (
    Asset,
    AssetCreateRequest,
    AssetStats,
    AssetStatus,
    AssetSummary,
    TokenizationRecord,
    token_key,
)

if TYPE_CHECKING:
    from pydantic import BaseModel

    from rwa_core.ledger.client import LedgerClient
    from rwa_core.ledger.protocol import SigningGateway
    from rwa_core.persistence.store import StateStore

log = structlog.get_logger()

ASSET_PREFIX: Final[str] = "asset:"
OWNER_INDEX_PREFIX: Final[str] = "asset:owner:"
_CENTS: Final[Decimal] = Decimal("0.01")


def asset_key(asset_id: str) -> str:
    return f"{ASSET_PREFIX}{asset_id}"


def owner_key(wallet_id: str) -> str:
    return f"{OWNER_INDEX_PREFIX}{wallet_id}"


class AssetRegistry:
    """CRUD and lifecycle transitions for assets.

    Attributes:
        store: Key-value persistence.
        asset_locks: Single-flight locks for tokenize/redeem per asset id.
    """

    def __init__(
        self,
        store: StateStore,
        wallets: SigningGateway,
        ledger: LedgerClient,
    ) -> None:
        self.store = store
        self.wallets = wallets
        self.ledger = ledger
        self.asset_locks = KeyedLock("asset")

    async def register(self, request: AssetCreateRequest | dict[str, Any]) -> Asset:
        """Register a new asset in PENDING state.

        Raises:
            InvalidInputError: Malformed request.
            WalletNotFoundError: Unknown owner wallet.
            OwnerNotActivatedError: Owner has no ledger presence.
        """
        request = validate_model(AssetCreateRequest, request)

        wallet = await self.wallets.get_wallet(request.owner_wallet_id)
        if not wallet.activated:
            raise OwnerNotActivatedError(request.owner_wallet_id)
        account = await self.ledger.account_info(wallet.address)
        if account is None:
            raise OwnerNotActivatedError(request.owner_wallet_id)

        asset = Asset(
            name=request.name,
            description=request.description,
            asset_type=request.asset_type,
            value=request.value,
            location=request.location,
            owner_wallet_id=request.owner_wallet_id,
            owner_address=wallet.address,
            documents=list(request.documents),
            metadata=dict(request.metadata),
        )
        self.save(asset)
        self.store.append(owner_key(asset.owner_wallet_id), asset.id)

        log.info(
            "Asset registered",
            asset_id=asset.id,
            asset_type=asset.asset_type.value,
            value=str(asset.value),
            owner=asset.owner_wallet_id,
        )
        return asset

    def get(self, asset_id: str) -> Asset:
        """Current projection of an asset.

        Raises:
            AssetNotFoundError: Unknown id.
        """
        asset = self.store.load(asset_key(asset_id), Asset)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset

    def list_by_owner(self, wallet_id: str) -> list[AssetSummary]:
        ids = self.store.list_range(owner_key(wallet_id))
        assets = self.store.load_many([asset_key(i) for i in ids], Asset)
        return [asset.summary() for asset in assets]

    def load_record(self, currency_code: str, issuer_address: str) -> TokenizationRecord | None:
        return self.store.load(token_key(currency_code, issuer_address), TokenizationRecord)

    def save(self, asset: Asset) -> None:
        """Persist an asset and, if present, its tokenization record together."""
        asset.updated_at = utc_now()
        models: dict[str, BaseModel] = {asset_key(asset.id): asset}
        if asset.tokenization is not None:
            models[asset.tokenization.store_key] = asset.tokenization
        self.store.save_atomic(models)

    def transition(self, asset: Asset, new_status: AssetStatus, **updates: Any) -> Asset:
        """Move an asset forward in its lifecycle and persist it.

        Raises:
            AlreadyTokenizedError: Tokenizing an asset that left PENDING.
            AlreadyRedeemedError: Any transition out of REDEEMED.
            ConflictError: Any other illegal transition.
        """
        if not asset.can_transition_to(new_status):
            if asset.status == AssetStatus.REDEEMED:
                raise AlreadyRedeemedError(asset.id)
            if new_status == AssetStatus.TOKENIZED:
                raise AlreadyTokenizedError(asset.id, asset.status.value)
            raise ConflictError(
                f"Invalid status transition for asset {asset.id}: "
                f"{asset.status.value} -> {new_status.value}"
            )

        for field_name, value in updates.items():
            setattr(asset, field_name, value)
        previous = asset.status
        asset.status = new_status
        self.save(asset)

        log.info(
            "Asset status changed",
            asset_id=asset.id,
            previous=previous.value,
            status=new_status.value,
        )
        return asset

    def all_assets(self) -> list[Asset]:
        keys = [
            key
            for key in self.store.scan(ASSET_PREFIX)
            if not key.startswith(OWNER_INDEX_PREFIX)
        ]
        return self.store.load_many(keys, Asset)

    def stats(self) -> AssetStats:
        """Counts and value totals over every registered asset."""
        assets = self.all_assets()
        tokenized = [a for a in assets if a.status == AssetStatus.TOKENIZED]
        total_value = sum((a.value for a in tokenized), Decimal(0))
        total_tokens = sum(
            (a.tokenization.total_supply for a in assets if a.tokenization is not None),
            Decimal(0),
        )
        average = total_value / len(assets) if assets else Decimal(0)

        return AssetStats(
            total_assets=len(assets),
            pending_assets=sum(1 for a in assets if a.status == AssetStatus.PENDING),
            tokenized_assets=len(tokenized),
            redeemed_assets=sum(1 for a in assets if a.status == AssetStatus.REDEEMED),
            total_value=total_value.quantize(_CENTS, rounding=ROUND_HALF_UP),
            total_tokens=total_tokens,
            average_asset_value=average.quantize(_CENTS, rounding=ROUND_HALF_UP),
        )
