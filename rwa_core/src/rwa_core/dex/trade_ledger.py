"""Append-only record of orders and trades per wallet.

Storage layout:
    order:{id}            -> Order
    trade:{id}            -> Trade
    orders:{wallet_id}    -> list of order ids, placement order
    trades:{wallet_id}    -> list of trade ids, execution order
    dex:stats:{counter}   -> integer counters (orders, cancelled, filled, trades)

Histories are never rewritten. The only mutation allowed is the status
change of an already recorded order.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Final

import structlog

from rwa_core.common.errors import InvalidInputError, NotFoundError
from rwa_core.dex.models import DexStats, Order, OrderStatus, Trade

if TYPE_CHECKING:
    from rwa_core.persistence.store import StateStore

log = structlog.get_logger()

DEFAULT_HISTORY_LIMIT: Final[int] = 20
MAX_HISTORY_LIMIT: Final[int] = 100

_ORDERS_COUNTER: Final[str] = "dex:stats:orders"
_CANCELLED_COUNTER: Final[str] = "dex:stats:cancelled"
_FILLED_COUNTER: Final[str] = "dex:stats:filled"
_TRADES_COUNTER: Final[str] = "dex:stats:trades"


def check_limit(limit: object, field_name: str = "limit") -> int:
    """Validate a page size in 1..100."""
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidInputError(f"{field_name} must be an integer")
    if not 1 <= limit <= MAX_HISTORY_LIMIT:
        raise InvalidInputError(f"{field_name} must be between 1 and {MAX_HISTORY_LIMIT}")
    return limit


class TradeLedger:
    """Per-wallet order and trade history backed by a StateStore."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    # --------------------------------------------------------------------------
    # Orders
    # --------------------------------------------------------------------------
    def record_order(self, order: Order) -> None:
        self.store.save(f"order:{order.id}", order)
        self.store.append(f"orders:{order.wallet_id}", order.id)
        self.store.increment(_ORDERS_COUNTER)
        if order.status == OrderStatus.FILLED:
            self.store.increment(_FILLED_COUNTER)
        log.debug("Order recorded", order_id=order.id, wallet_id=order.wallet_id)

    def update_order(self, order: Order) -> None:
        """Persist a status change of a recorded order."""
        key = f"order:{order.id}"
        previous = self.store.load(key, Order)
        if previous is None:
            raise NotFoundError(f"Order not recorded: {order.id}")

        self.store.save(key, order)
        if previous.status != OrderStatus.CANCELLED and order.status == OrderStatus.CANCELLED:
            self.store.increment(_CANCELLED_COUNTER)

    def orders(self, wallet_id: str) -> list[Order]:
        """All orders of a wallet, most recent first."""
        ids = self.store.list_range(f"orders:{wallet_id}")
        orders = self.store.load_many([f"order:{i}" for i in reversed(ids)], Order)
        return orders

    def find_active_order(self, wallet_id: str, offer_sequence: int) -> Order | None:
        for order in self.orders(wallet_id):
            if order.is_active and order.offer_sequence == offer_sequence:
                return order
        return None

    # --------------------------------------------------------------------------
    # Trades
    # --------------------------------------------------------------------------
    def record_trade(self, trade: Trade) -> None:
        self.store.save(f"trade:{trade.id}", trade)
        self.store.append(f"trades:{trade.wallet_id}", trade.id)
        self.store.increment(_TRADES_COUNTER)
        log.debug(
            "Trade recorded",
            trade_id=trade.id,
            wallet_id=trade.wallet_id,
            fills=trade.total_executed,
        )

    def history(self, wallet_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Trade]:
        """Most recent trades first.

        Raises:
            InvalidInputError: limit outside 1..100.
        """
        limit = check_limit(limit)
        ids = self.store.list_range(f"trades:{wallet_id}", -limit, -1)
        return self.store.load_many([f"trade:{i}" for i in reversed(ids)], Trade)

    # --------------------------------------------------------------------------
    # Stats
    # --------------------------------------------------------------------------
    def _counter(self, key: str) -> int:
        return int(self.store.get(key) or 0)

    def stats(self) -> DexStats:
        total = self._counter(_ORDERS_COUNTER)
        cancelled = self._counter(_CANCELLED_COUNTER)
        filled = self._counter(_FILLED_COUNTER)
        active = total - cancelled - filled
        percentage = Decimal(active) * 100 / Decimal(total) if total else Decimal(0)
        return DexStats(
            total_orders=total,
            active_orders=active,
            cancelled_orders=cancelled,
            filled_orders=filled,
            total_trades=self._counter(_TRADES_COUNTER),
            active_order_percentage=percentage,
        )
