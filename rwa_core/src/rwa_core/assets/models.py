"""Asset lifecycle models.

An ``Asset`` moves through a strict forward state machine:

    PENDING -> TOKENIZED -> REDEEMED

Once tokenized it carries a ``TokenizationRecord`` describing the issued
currency that represents it on the ledger. The record is the only place
where supply accounting lives; it is changed by transfers from the issuer
and by redemptions, never by callers directly.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from rwa_core.common.errors import InvalidInputError
from rwa_core.common.types import utc_now, validate_currency_code


# ==============================================================================
# Enums
# ==============================================================================
class AssetType(str, Enum):
    """Category of the real-world asset."""

    REAL_ESTATE = "real_estate"
    VEHICLE = "vehicle"
    ARTWORK = "artwork"
    COMMODITY = "commodity"
    EQUIPMENT = "equipment"
    OTHER = "other"


class AssetStatus(str, Enum):
    """Asset lifecycle state.

    State Transitions:
        PENDING -> TOKENIZED -> REDEEMED
    """

    PENDING = "pending"
    TOKENIZED = "tokenized"
    REDEEMED = "redeemed"


class VerificationStatus(str, Enum):
    """Off-ledger verification of the asset documents."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REJECTED = "rejected"


def _currency_code(v: str) -> str:
    try:
        return validate_currency_code(v)
    except InvalidInputError as exc:
        raise ValueError(exc.message) from exc


_VALID_TRANSITIONS: dict[AssetStatus, set[AssetStatus]] = {
    AssetStatus.PENDING: {AssetStatus.TOKENIZED},
    AssetStatus.TOKENIZED: {AssetStatus.REDEEMED},
    AssetStatus.REDEEMED: set(),
}


# ==============================================================================
# Domain Models
# ==============================================================================
class TokenizationRecord(BaseModel):
    """Issued currency backing an asset.

    Attributes:
        asset_id: Asset this supply represents.
        currency_code: 3-char issued currency code.
        total_supply: Units minted at tokenization.
        available_supply: Units still held by the issuer (0..total_supply).
        issuer_address: Ledger account that issued the currency.
        transaction_hash: Hash of the issuing payment.
        trust_set_hash: Hash of the issuer's TrustSet.
        ledger_index: Ledger that validated the issuing payment.
        created_at: Tokenization timestamp.
    """

    model_config = {"frozen": False, "validate_assignment": True}

    asset_id: str
    currency_code: str
    total_supply: Decimal = Field(gt=0)
    available_supply: Decimal = Field(ge=0)
    issuer_address: str
    transaction_hash: str
    trust_set_hash: str | None = None
    ledger_index: int | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("currency_code")
    @classmethod
    def check_currency_code(cls, v: str) -> str:
        return _currency_code(v)

    @model_validator(mode="after")
    def check_supply_bounds(self) -> TokenizationRecord:
        if self.available_supply > self.total_supply:
            msg = (
                f"available_supply {self.available_supply} exceeds "
                f"total_supply {self.total_supply}"
            )
            raise ValueError(msg)
        return self

    @property
    def store_key(self) -> str:
        return token_key(self.currency_code, self.issuer_address)


def token_key(currency_code: str, issuer_address: str) -> str:
    return f"token:{currency_code}:{issuer_address}"


class Asset(BaseModel):
    """Registered real-world asset.

    Attributes:
        id: Unique asset identifier (UUID).
        name: Display name (also the source of the default currency code).
        value: Appraised value in the platform's reference currency.
        owner_wallet_id: Platform wallet that registered the asset.
        owner_address: Ledger address of the owner wallet.
        status: Lifecycle state.
        tokenization: Issued currency, once tokenized.
        redeemed_by: Ledger address of the wallet that completed the redemption.
    """

    model_config = {"frozen": False, "validate_assignment": True}

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    asset_type: AssetType
    value: Decimal = Field(gt=0)
    location: str = ""
    owner_wallet_id: str
    owner_address: str
    documents: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: AssetStatus = AssetStatus.PENDING
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    tokenization: TokenizationRecord | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    tokenized_at: datetime | None = None
    redeemed_at: datetime | None = None
    redeemed_by: str | None = None

    def can_transition_to(self, new_status: AssetStatus) -> bool:
        """Check if state transition is valid."""
        return new_status in _VALID_TRANSITIONS.get(self.status, set())

    def summary(self) -> AssetSummary:
        record = self.tokenization
        return AssetSummary(
            id=self.id,
            name=self.name,
            asset_type=self.asset_type,
            value=self.value,
            status=self.status,
            verification_status=self.verification_status,
            currency_code=record.currency_code if record else None,
            total_supply=record.total_supply if record else None,
            available_supply=record.available_supply if record else None,
            created_at=self.created_at,
            tokenized_at=self.tokenized_at,
        )


class AssetSummary(BaseModel):
    """Listing view of an asset (no documents or metadata payloads)."""

    id: str
    name: str
    asset_type: AssetType
    value: Decimal
    status: AssetStatus
    verification_status: VerificationStatus
    currency_code: str | None = None
    total_supply: Decimal | None = None
    available_supply: Decimal | None = None
    created_at: datetime
    tokenized_at: datetime | None = None


# ==============================================================================
# Requests
# ==============================================================================
class AssetCreateRequest(BaseModel):
    """Client payload for registering an asset."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    asset_type: AssetType
    value: Decimal = Field(gt=0)
    location: str = Field(default="", max_length=500)
    owner_wallet_id: str = Field(min_length=1)
    documents: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "name must not be blank"
            raise ValueError(msg)
        return stripped


class TokenizationParams(BaseModel):
    """Optional overrides for tokenization."""

    model_config = {"extra": "forbid"}

    currency_code: str | None = None
    total_supply: Decimal | None = Field(default=None, gt=0)

    @field_validator("currency_code")
    @classmethod
    def check_currency_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _currency_code(v)


# ==============================================================================
# Results
# ==============================================================================
class TokenizationResult(BaseModel):
    asset_id: str
    currency_code: str
    total_supply: Decimal
    issuer_address: str
    transaction_hash: str
    trust_set_hash: str
    ledger_index: int | None = None
    status: AssetStatus


class TransferResult(BaseModel):
    transaction_hash: str
    ledger_index: int | None = None
    from_wallet_id: str
    from_address: str
    to_address: str
    currency_code: str
    issuer_address: str
    amount: Decimal
    available_supply: Decimal | None = Field(
        default=None,
        description="Issuer's remaining supply, set only for transfers from the issuer",
    )


class TokenBalance(BaseModel):
    wallet_id: str
    address: str
    currency_code: str
    issuer_address: str
    balance: Decimal = Decimal(0)
    limit: Decimal = Decimal(0)


class TrustLineResult(BaseModel):
    transaction_hash: str
    wallet_id: str
    address: str
    currency_code: str
    issuer_address: str
    limit: Decimal


class RedemptionResult(BaseModel):
    asset_id: str
    transaction_hash: str
    token_amount: Decimal
    redemption_percentage: Decimal
    asset_value_released: Decimal
    status: AssetStatus
    redeemer_address: str
    redeemed_by: str | None = None


class AssetStats(BaseModel):
    """Aggregate view over all registered assets."""

    total_assets: int = 0
    pending_assets: int = 0
    tokenized_assets: int = 0
    redeemed_assets: int = 0
    total_value: Decimal = Field(
        default=Decimal(0),
        description="Sum of values of currently tokenized assets",
    )
    total_tokens: Decimal = Field(
        default=Decimal(0),
        description="Sum of total_supply over all tokenization records",
    )
    average_asset_value: Decimal = Decimal(0)
