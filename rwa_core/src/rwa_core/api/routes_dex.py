"""DEX endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from rwa_core.api.dependencies import services_of
from rwa_core.api.envelope import success
from rwa_core.api.schemas import MarketOrderBody, OfferBody
from rwa_core.common.types import NATIVE_CURRENCY
from rwa_core.dex.trade_ledger import DEFAULT_HISTORY_LIMIT

router = APIRouter(prefix="/dex", tags=["dex"])


def _side(currency: str, issuer: str | None) -> dict[str, str | None]:
    if currency.strip().upper() == NATIVE_CURRENCY:
        return {"currency": NATIVE_CURRENCY}
    return {"currency": currency, "issuer": issuer}


@router.post("/offer")
async def create_offer(request: Request, body: OfferBody) -> JSONResponse:
    order = await services_of(request).orderbook.create_offer(
        body.wallet_id, body.taker_gets, body.taker_pays, body.expiration
    )
    return success(order, "Offer created", status_code=201)


@router.delete("/offer/{wallet_id}/{offer_sequence}")
async def cancel_offer(request: Request, wallet_id: str, offer_sequence: int) -> JSONResponse:
    result = await services_of(request).orderbook.cancel_offer(wallet_id, offer_sequence)
    return success(result, "Offer cancelled")


@router.post("/market-order")
async def market_order(request: Request, body: MarketOrderBody) -> JSONResponse:
    trade = await services_of(request).orderbook.execute_market_order(
        body.wallet_id, body.taker_gets, body.taker_pays
    )
    return success(trade, "Market order executed")


@router.get("/orderbook")
async def order_book(
    request: Request,
    taker_gets_currency: str,
    taker_pays_currency: str,
    taker_gets_issuer: str | None = None,
    taker_pays_issuer: str | None = None,
    limit: int | None = None,
) -> JSONResponse:
    book = await services_of(request).orderbook.get_order_book(
        _side(taker_gets_currency, taker_gets_issuer),
        _side(taker_pays_currency, taker_pays_issuer),
        limit,
    )
    return success(
        {**book.model_dump(mode="json"), "total_offers": book.total_offers},
        "Order book",
    )


@router.get("/offers/{wallet_id}")
async def wallet_offers(request: Request, wallet_id: str) -> JSONResponse:
    offers = await services_of(request).orderbook.get_wallet_offers(wallet_id)
    return success(offers, "Wallet offers")


@router.get("/trades/{wallet_id}")
async def trade_history(
    request: Request,
    wallet_id: str,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> JSONResponse:
    trades = services_of(request).orderbook.trade_history(wallet_id, limit)
    return success({"wallet_id": wallet_id, "trades": trades, "total": len(trades)}, "Trade history")


@router.get("/pair/{currency1}/{issuer1}/{currency2}/{issuer2}")
async def trading_pair(
    request: Request,
    currency1: str,
    issuer1: str,
    currency2: str,
    issuer2: str,
) -> JSONResponse:
    info = await services_of(request).orderbook.get_trading_pair_info(
        currency1, issuer1, currency2, issuer2
    )
    return success(info, "Trading pair info")


@router.get("/stats")
async def dex_stats(request: Request) -> JSONResponse:
    return success(services_of(request).orderbook.stats(), "DEX statistics")
