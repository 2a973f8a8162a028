"""Service graph wiring.

Builds every component from its collaborators once, so the HTTP layer and
tests share the exact same object graph.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog

from rwa_core.assets.redemption import RedemptionEngine
from rwa_core.assets.registry import AssetRegistry
from rwa_core.assets.tokenization import DEFAULT_UNITS_PER_TOKEN, TokenizationEngine
from rwa_core.assets.transfer import TransferCoordinator
from rwa_core.dex.orderbook import OrderBookGateway
from rwa_core.dex.trade_ledger import DEFAULT_HISTORY_LIMIT, TradeLedger
from rwa_core.ledger.client import LedgerClient

if TYPE_CHECKING:
    from rwa_core.ledger.protocol import LedgerGateway, SigningGateway
    from rwa_core.persistence.store import StateStore

log = structlog.get_logger()


@dataclass
class Services:
    """Fully wired orchestration layer."""

    store: StateStore
    gateway: LedgerGateway
    wallets: SigningGateway
    ledger: LedgerClient
    registry: AssetRegistry
    tokenization: TokenizationEngine
    transfers: TransferCoordinator
    redemption: RedemptionEngine
    trade_ledger: TradeLedger
    orderbook: OrderBookGateway

    async def start(self) -> None:
        start = getattr(self.gateway, "start", None)
        if start is not None:
            await start()
        log.info("Services started", gateway=type(self.gateway).__name__)

    async def stop(self) -> None:
        stop = getattr(self.gateway, "stop", None)
        if stop is not None:
            await stop()
        log.info("Services stopped")


def build_services(
    store: StateStore,
    gateway: LedgerGateway,
    wallets: SigningGateway,
    ledger_options: dict[str, Any] | None = None,
    units_per_token: Decimal | int | str = DEFAULT_UNITS_PER_TOKEN,
    default_book_limit: int = DEFAULT_HISTORY_LIMIT,
) -> Services:
    """Wire the orchestration layer around a gateway, store and wallets.

    Args:
        ledger_options: Keyword arguments for LedgerClient (timeouts, retries,
            circuit breaker).
    """
    ledger = LedgerClient(gateway, **(ledger_options or {}))
    registry = AssetRegistry(store, wallets, ledger)
    transfers = TransferCoordinator(registry, wallets, ledger)
    trade_ledger = TradeLedger(store)
    return Services(
        store=store,
        gateway=gateway,
        wallets=wallets,
        ledger=ledger,
        registry=registry,
        tokenization=TokenizationEngine(registry, wallets, ledger, units_per_token),
        transfers=transfers,
        redemption=RedemptionEngine(registry, transfers),
        trade_ledger=trade_ledger,
        orderbook=OrderBookGateway(wallets, ledger, trade_ledger, default_book_limit),
    )
