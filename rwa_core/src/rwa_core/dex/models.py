"""DEX order, trade and market-data models.

Orders are semi-immutable: amounts and ledger references never change after
creation, only the status fields (cancellation) update. Trades are fully
immutable once recorded.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from rwa_core.common.types import Amount, CurrencySpec, utc_now


# ==============================================================================
# Enums
# ==============================================================================
class OrderStatus(str, Enum):
    """Order lifecycle state.

    State Transitions:
        ACTIVE -> CANCELLED
        FILLED is terminal: the offer crossed completely on placement.
    """

    ACTIVE = "active"
    CANCELLED = "cancelled"
    FILLED = "filled"


class TradeStatus(str, Enum):
    COMPLETED = "completed"


class TradeType(str, Enum):
    MARKET = "market"
    LIMIT_FILL = "limit_fill"


# ==============================================================================
# Orders and Trades
# ==============================================================================
class Order(BaseModel):
    """Resting offer placed through the platform.

    Attributes:
        taker_gets: What the offer gives away (what a taker receives).
        taker_pays: What the offer wants in return.
        offer_sequence: Ledger sequence identifying the resting offer; None
            when the offer crossed completely on placement (status FILLED).
    """

    model_config = {"frozen": False, "validate_assignment": True}

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    wallet_id: str
    wallet_address: str
    taker_gets: Amount
    taker_pays: Amount
    transaction_hash: str
    ledger_index: int | None = None
    offer_sequence: int | None = None
    status: OrderStatus = OrderStatus.ACTIVE
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_transaction_hash: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == OrderStatus.ACTIVE


class Fill(BaseModel):
    """Amounts exchanged against one resting offer."""

    model_config = {"frozen": True}

    counterparty: str
    offer_sequence: int | None = None
    taker_gets: Amount
    taker_pays: Amount


class Trade(BaseModel):
    """Executed immediate-or-cancel order with its fills."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    wallet_id: str
    wallet_address: str
    requested_taker_gets: Amount
    requested_taker_pays: Amount
    fills: list[Fill] = Field(default_factory=list)
    transaction_hash: str
    ledger_index: int | None = None
    status: TradeStatus = TradeStatus.COMPLETED
    trade_type: TradeType = TradeType.MARKET
    executed_at: datetime = Field(default_factory=utc_now)

    @property
    def total_executed(self) -> int:
        return len(self.fills)


class CancelResult(BaseModel):
    order_id: str
    offer_sequence: int
    transaction_hash: str
    status: OrderStatus
    cancelled_at: datetime


# ==============================================================================
# Market data
# ==============================================================================
class AmountView(BaseModel):
    """Amount as reported by the ledger (may be zero, native in whole units)."""

    currency: str
    issuer: str | None = None
    value: Decimal


class BookOffer(BaseModel):
    account: str
    sequence: int
    taker_gets: AmountView
    taker_pays: AmountView
    quality: Decimal | None = None
    flags: int = 0
    expiration: int | None = None


class OrderBook(BaseModel):
    taker_gets: CurrencySpec
    taker_pays: CurrencySpec
    offers: list[BookOffer] = Field(default_factory=list)
    limit: int

    @property
    def total_offers(self) -> int:
        return len(self.offers)


class WalletOffers(BaseModel):
    wallet_id: str
    wallet_address: str
    offers: list[BookOffer] = Field(default_factory=list)


class BookSide(BaseModel):
    offers: list[BookOffer] = Field(default_factory=list)
    total_depth: int = 0


class Spread(BaseModel):
    bid_price: Decimal
    ask_price: Decimal
    spread: Decimal
    spread_percentage: Decimal | None = None


class TradingPairInfo(BaseModel):
    pair: str
    base: CurrencySpec
    quote: CurrencySpec
    bids: BookSide
    asks: BookSide
    spread: Spread | None = None
    last_updated: datetime = Field(default_factory=utc_now)


class DexStats(BaseModel):
    total_orders: int = 0
    active_orders: int = 0
    cancelled_orders: int = 0
    filled_orders: int = 0
    total_trades: int = 0
    active_order_percentage: Decimal = Decimal(0)
