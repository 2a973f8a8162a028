"""DEX orders, market orders, order books and trade history."""

from rwa_core.dex.models import (
    BookOffer,
    CancelResult,
    DexStats,
    Fill,
    Order,
    OrderBook,
    OrderStatus,
    Trade,
    TradeStatus,
    TradeType,
    TradingPairInfo,
    WalletOffers,
)
from rwa_core.dex.orderbook import OrderBookGateway, created_offer_sequence, parse_fills
from rwa_core.dex.trade_ledger import TradeLedger

__all__ = [
    "BookOffer",
    "CancelResult",
    "DexStats",
    "Fill",
    "Order",
    "OrderBook",
    "OrderBookGateway",
    "OrderStatus",
    "Trade",
    "TradeLedger",
    "TradeStatus",
    "TradeType",
    "TradingPairInfo",
    "WalletOffers",
    "created_offer_sequence",
    "parse_fills",
]
