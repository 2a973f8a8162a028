"""Request bodies for the HTTP API.

Amount fields accept both client shapes: a bare number for the native
currency, an object for an issued currency. They are normalized by
``parse_amount`` inside the services.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class TransferBody(BaseModel):
    from_wallet_id: str = Field(min_length=1)
    to_address: str
    currency_code: str
    issuer_address: str
    amount: Decimal


class RedeemBody(BaseModel):
    wallet_id: str = Field(min_length=1)
    token_amount: Decimal


class TrustLineBody(BaseModel):
    wallet_id: str = Field(min_length=1)
    currency_code: str
    issuer_address: str
    limit: Decimal


class OfferBody(BaseModel):
    wallet_id: str = Field(min_length=1)
    taker_gets: Any
    taker_pays: Any
    expiration: datetime | None = None


class MarketOrderBody(BaseModel):
    wallet_id: str = Field(min_length=1)
    taker_gets: Any
    taker_pays: Any
