"""Order placement and market data on the ledger's native DEX.

Matching is done by the ledger; this module builds OfferCreate/OfferCancel
transactions, reads executed fills back from transaction metadata, and
keeps the platform's order/trade history in the TradeLedger.

Fill parsing:
    Every resting offer consumed by a transaction appears in its metadata as
    a ModifiedNode (partially consumed) or DeletedNode (fully consumed)
    Offer entry. PreviousFields minus FinalFields is what changed hands:
    the drop in TakerGets is what the taker received, the drop in TakerPays
    is what it paid.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Final

import structlog

from rwa_core.common.errors import InvalidInputError, NoLiquidityError, OrderNotFoundError
from rwa_core.common.locks import KeyedLock
from rwa_core.common.types import (
    NATIVE_CURRENCY,
    CurrencySpec,
    IssuedAmount,
    NativeAmount,
    parse_amount,
    parse_currency,
    utc_now,
)
from rwa_core.dex.models import (
    AmountView,
    BookOffer,
    BookSide,
    CancelResult,
    DexStats,
    Fill,
    Order,
    OrderBook,
    OrderStatus,
    Spread,
    Trade,
    TradeType,
    TradingPairInfo,
    WalletOffers,
)
from rwa_core.dex.trade_ledger import DEFAULT_HISTORY_LIMIT, check_limit
from rwa_core.ledger.codec import (
    TF_IMMEDIATE_OR_CANCEL,
    amount_to_wire,
    build_amount,
    currency_to_wire,
    decode_wire,
    to_ripple_time,
)

if TYPE_CHECKING:
    from rwa_core.dex.trade_ledger import TradeLedger
    from rwa_core.ledger.client import LedgerClient
    from rwa_core.ledger.protocol import SigningGateway

log = structlog.get_logger()

PAIR_BOOK_DEPTH: Final[int] = 10
PAIR_TOP_OFFERS: Final[int] = 5
KILLED_RESULT: Final[str] = "tecKILLED"  # immediate-or-cancel offer crossed nothing


# ==============================================================================
# Metadata parsing
# ==============================================================================
def _offer_nodes(meta: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    nodes = []
    for affected in meta.get("AffectedNodes", []):
        for node_type, node in affected.items():
            if node.get("LedgerEntryType") == "Offer":
                nodes.append((node_type, node))
    return nodes


def parse_fills(meta: dict[str, Any], taker_address: str) -> list[Fill]:
    """Fills against other accounts' offers recorded in transaction metadata."""
    fills: list[Fill] = []
    for node_type, node in _offer_nodes(meta):
        if node_type not in ("ModifiedNode", "DeletedNode"):
            continue
        previous = node.get("PreviousFields") or {}
        final = node.get("FinalFields") or {}
        if "TakerGets" not in previous or "TakerPays" not in previous:
            continue
        if final.get("Account") == taker_address:
            continue

        gets_spec, gets_before = decode_wire(previous["TakerGets"])
        _, gets_after = decode_wire(final.get("TakerGets", previous["TakerGets"]))
        pays_spec, pays_before = decode_wire(previous["TakerPays"])
        _, pays_after = decode_wire(final.get("TakerPays", previous["TakerPays"]))
        received = gets_before - gets_after
        paid = pays_before - pays_after
        if received <= 0 or paid <= 0:
            continue

        fills.append(
            Fill(
                counterparty=final.get("Account", ""),
                offer_sequence=final.get("Sequence"),
                taker_gets=build_amount(gets_spec, received),
                taker_pays=build_amount(pays_spec, paid),
            )
        )
    return fills


def created_offer_sequence(meta: dict[str, Any], account: str) -> int | None:
    """Sequence of the offer left resting by a transaction, if any."""
    for node_type, node in _offer_nodes(meta):
        if node_type != "CreatedNode":
            continue
        fields = node.get("NewFields", {})
        if fields.get("Account") == account and "Sequence" in fields:
            return int(fields["Sequence"])
    return None


def _amount_view(raw: Any) -> AmountView:
    spec, value = decode_wire(raw)
    return AmountView(currency=spec.currency, issuer=spec.issuer, value=value)


def _book_offer(raw: dict[str, Any]) -> BookOffer:
    """Normalize a book_offers (capitalized) or account_offers (lowercase) entry."""
    quality = raw.get("quality")
    return BookOffer(
        account=raw.get("Account", ""),
        sequence=int(raw.get("Sequence", raw.get("seq", 0))),
        taker_gets=_amount_view(raw.get("TakerGets", raw.get("taker_gets"))),
        taker_pays=_amount_view(raw.get("TakerPays", raw.get("taker_pays"))),
        quality=Decimal(str(quality)) if quality is not None else None,
        flags=int(raw.get("Flags", raw.get("flags", 0)) or 0),
        expiration=raw.get("Expiration", raw.get("expiration")),
    )


def _parse_expiration(expiration: datetime | str | None) -> datetime | None:
    if expiration is None:
        return None
    if isinstance(expiration, str):
        try:
            expiration = datetime.fromisoformat(expiration.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInputError(f"Invalid expiration: {expiration!r}") from exc
    if expiration.tzinfo is None:
        raise InvalidInputError("expiration must include a timezone")
    if expiration <= utc_now():
        raise InvalidInputError("expiration must be in the future")
    return expiration


def _pair_side(currency: str, issuer: str | None) -> CurrencySpec:
    if currency.strip().upper() == NATIVE_CURRENCY:
        return CurrencySpec(currency=NATIVE_CURRENCY)
    return parse_currency({"currency": currency, "issuer": issuer})


# ==============================================================================
# Gateway
# ==============================================================================
class OrderBookGateway:
    """Offers, market orders and order-book queries for platform wallets."""

    def __init__(
        self,
        wallets: SigningGateway,
        ledger: LedgerClient,
        trade_ledger: TradeLedger,
        default_book_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self.wallets = wallets
        self.ledger = ledger
        self.trade_ledger = trade_ledger
        self.default_book_limit = check_limit(default_book_limit, "default_book_limit")
        self.cancel_locks = KeyedLock("cancel")

    def _validated_pair(
        self, taker_gets: Any, taker_pays: Any
    ) -> tuple[NativeAmount | IssuedAmount, NativeAmount | IssuedAmount]:
        gets = parse_amount(taker_gets, "taker_gets")
        pays = parse_amount(taker_pays, "taker_pays")
        if gets.same_asset(pays):
            raise InvalidInputError("taker_gets and taker_pays must be different currencies")
        return gets, pays

    # --------------------------------------------------------------------------
    # Orders
    # --------------------------------------------------------------------------
    async def create_offer(
        self,
        wallet_id: str,
        taker_gets: Any,
        taker_pays: Any,
        expiration: datetime | str | None = None,
    ) -> Order:
        """Place a resting offer.

        Any part that crosses existing offers executes immediately and is
        recorded as a LIMIT_FILL trade.

        Raises:
            InvalidInputError: Malformed amounts or past expiration.
            WalletNotFoundError / WalletNotActivatedError: Wallet cannot sign.
            RWAError: Classified ledger rejection.
        """
        gets, pays = self._validated_pair(taker_gets, taker_pays)
        expires_at = _parse_expiration(expiration)

        signer = await self.wallets.get_signer(wallet_id)
        transaction: dict[str, Any] = {
            "TransactionType": "OfferCreate",
            "Account": signer.address,
            "TakerGets": amount_to_wire(gets),
            "TakerPays": amount_to_wire(pays),
        }
        if expires_at is not None:
            transaction["Expiration"] = to_ripple_time(expires_at)

        result = await self.ledger.submit(transaction, signer)

        # No created Offer node means the whole offer crossed on placement.
        offer_sequence = created_offer_sequence(result.meta, signer.address)
        order = Order(
            wallet_id=wallet_id,
            wallet_address=signer.address,
            taker_gets=gets,
            taker_pays=pays,
            transaction_hash=result.tx_hash,
            ledger_index=result.ledger_index,
            offer_sequence=offer_sequence,
            status=OrderStatus.ACTIVE if offer_sequence is not None else OrderStatus.FILLED,
            expires_at=expires_at,
        )
        self.trade_ledger.record_order(order)

        fills = parse_fills(result.meta, signer.address)
        if fills:
            self._record_trade(
                wallet_id,
                signer.address,
                gets,
                pays,
                fills,
                result.tx_hash,
                result.ledger_index,
                TradeType.LIMIT_FILL,
            )

        log.info(
            "Offer created",
            wallet_id=wallet_id,
            order_id=order.id,
            status=order.status.value,
            offer_sequence=order.offer_sequence,
            fills=len(fills),
            tx_hash=result.tx_hash,
        )
        return order

    async def cancel_offer(self, wallet_id: str, offer_sequence: int) -> CancelResult:
        """Cancel an active order placed by this wallet.

        The lookup and the OfferCancel run under one per-wallet lock, so two
        cancellations of the same order submit only once.

        Raises:
            OrderNotFoundError: No active order with that sequence (no network call made).
        """
        if isinstance(offer_sequence, bool) or not isinstance(offer_sequence, int) or offer_sequence <= 0:
            raise InvalidInputError("offer_sequence must be a positive integer")

        async with self.cancel_locks.hold(wallet_id):
            order = self.trade_ledger.find_active_order(wallet_id, offer_sequence)
            if order is None:
                raise OrderNotFoundError(wallet_id, offer_sequence)

            signer = await self.wallets.get_signer(wallet_id)
            result = await self.ledger.submit(
                {
                    "TransactionType": "OfferCancel",
                    "Account": signer.address,
                    "OfferSequence": offer_sequence,
                },
                signer,
            )

            cancelled_at = utc_now()
            order.status = OrderStatus.CANCELLED
            order.cancelled_at = cancelled_at
            order.cancel_transaction_hash = result.tx_hash
            self.trade_ledger.update_order(order)

        log.info(
            "Offer cancelled",
            wallet_id=wallet_id,
            order_id=order.id,
            offer_sequence=offer_sequence,
            tx_hash=result.tx_hash,
        )
        return CancelResult(
            order_id=order.id,
            offer_sequence=offer_sequence,
            transaction_hash=result.tx_hash,
            status=order.status,
            cancelled_at=cancelled_at,
        )

    async def execute_market_order(self, wallet_id: str, taker_gets: Any, taker_pays: Any) -> Trade:
        """Immediate-or-cancel order; whatever crosses is the trade.

        A trade with no fills is a valid, completed outcome. Networks that
        kill an immediate-or-cancel offer crossing nothing (``tecKILLED``)
        report the same outcome.
        """
        gets, pays = self._validated_pair(taker_gets, taker_pays)
        signer = await self.wallets.get_signer(wallet_id)

        try:
            result = await self.ledger.submit(
                {
                    "TransactionType": "OfferCreate",
                    "Account": signer.address,
                    "TakerGets": amount_to_wire(gets),
                    "TakerPays": amount_to_wire(pays),
                    "Flags": TF_IMMEDIATE_OR_CANCEL,
                },
                signer,
            )
        except NoLiquidityError as exc:
            if exc.result_code != KILLED_RESULT:
                raise
            trade = self._record_trade(
                wallet_id,
                signer.address,
                gets,
                pays,
                [],
                exc.transaction_hash or "",
                None,
                TradeType.MARKET,
            )
            log.info(
                "Market order found no liquidity",
                wallet_id=wallet_id,
                trade_id=trade.id,
                result_code=exc.result_code,
                tx_hash=exc.transaction_hash,
            )
            return trade

        fills = parse_fills(result.meta, signer.address)
        trade = self._record_trade(
            wallet_id,
            signer.address,
            gets,
            pays,
            fills,
            result.tx_hash,
            result.ledger_index,
            TradeType.MARKET,
        )
        log.info(
            "Market order executed",
            wallet_id=wallet_id,
            trade_id=trade.id,
            fills=len(fills),
            tx_hash=result.tx_hash,
        )
        return trade

    def _record_trade(
        self,
        wallet_id: str,
        address: str,
        gets: NativeAmount | IssuedAmount,
        pays: NativeAmount | IssuedAmount,
        fills: list[Fill],
        transaction_hash: str,
        ledger_index: int | None,
        trade_type: TradeType,
    ) -> Trade:
        trade = Trade(
            wallet_id=wallet_id,
            wallet_address=address,
            requested_taker_gets=gets,
            requested_taker_pays=pays,
            fills=fills,
            transaction_hash=transaction_hash,
            ledger_index=ledger_index,
            trade_type=trade_type,
        )
        self.trade_ledger.record_trade(trade)
        return trade

    # --------------------------------------------------------------------------
    # Market data
    # --------------------------------------------------------------------------
    async def get_order_book(
        self,
        taker_gets: Any,
        taker_pays: Any,
        limit: int | None = None,
    ) -> OrderBook:
        """Offers giving ``taker_gets`` for ``taker_pays``, best first.

        Raises:
            InvalidInputError: limit outside 1..100 or malformed currencies.
        """
        limit = check_limit(self.default_book_limit if limit is None else limit)
        gets = parse_currency(taker_gets, "taker_gets")
        pays = parse_currency(taker_pays, "taker_pays")

        raw = await self.ledger.order_book(currency_to_wire(gets), currency_to_wire(pays), limit)
        return OrderBook(
            taker_gets=gets,
            taker_pays=pays,
            offers=[_book_offer(o) for o in raw[:limit]],
            limit=limit,
        )

    async def get_trading_pair_info(
        self,
        currency1: str,
        issuer1: str | None,
        currency2: str,
        issuer2: str | None,
    ) -> TradingPairInfo:
        """Both sides of a pair with best prices and spread.

        Prices are the raw ledger ``quality`` of the best offer on each side,
        so the spread is only meaningful when both sides quote in comparable
        units.
        """
        base = _pair_side(currency1, issuer1)
        quote = _pair_side(currency2, issuer2)

        bids = await self.get_order_book(base, quote, PAIR_BOOK_DEPTH)
        asks = await self.get_order_book(quote, base, PAIR_BOOK_DEPTH)

        spread = None
        best_bid = bids.offers[0] if bids.offers else None
        best_ask = asks.offers[0] if asks.offers else None
        if best_bid and best_ask and best_bid.quality is not None and best_ask.quality is not None:
            difference = best_ask.quality - best_bid.quality
            spread = Spread(
                bid_price=best_bid.quality,
                ask_price=best_ask.quality,
                spread=difference,
                spread_percentage=(
                    difference / best_bid.quality * 100 if best_bid.quality else None
                ),
            )

        return TradingPairInfo(
            pair=f"{base.currency}/{quote.currency}",
            base=base,
            quote=quote,
            bids=BookSide(offers=bids.offers[:PAIR_TOP_OFFERS], total_depth=bids.total_offers),
            asks=BookSide(offers=asks.offers[:PAIR_TOP_OFFERS], total_depth=asks.total_offers),
            spread=spread,
        )

    async def get_wallet_offers(self, wallet_id: str) -> WalletOffers:
        """Offers of a wallet currently resting on the ledger."""
        wallet = await self.wallets.get_wallet(wallet_id)
        raw = await self.ledger.account_offers(wallet.address)
        offers = [_book_offer({"Account": wallet.address, **o}) for o in raw]
        return WalletOffers(wallet_id=wallet_id, wallet_address=wallet.address, offers=offers)

    def trade_history(self, wallet_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Trade]:
        return self.trade_ledger.history(wallet_id, limit)

    def stats(self) -> DexStats:
        return self.trade_ledger.stats()
