"""Shared fixtures: a simulated ledger, wallets and the wired service graph."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from rwa_core.container import Services, build_services
from rwa_core.ledger import MockLedger, MockSigner, WalletDirectory, generate_address
from rwa_core.persistence.store import MemoryStore

# No backoff sleeps in tests
FAST_LEDGER_OPTIONS = {
    "retry_min_wait": 0,
    "retry_max_wait": 0,
    "submit_timeout": 5.0,
    "query_timeout": 5.0,
}


@pytest.fixture
def ledger() -> MockLedger:
    """Simulated ledger without latency."""
    return MockLedger()


@pytest.fixture
def wallets() -> WalletDirectory:
    return WalletDirectory()


@pytest.fixture
def make_wallet(ledger: MockLedger, wallets: WalletDirectory) -> Callable[..., str]:
    """Register a wallet and return its ledger address.

    ``funded=False`` registers the wallet without creating its ledger account.
    """

    def _make(
        wallet_id: str,
        funding: int = 1000,
        *,
        funded: bool = True,
        activated: bool = True,
    ) -> str:
        address = generate_address()
        if funded:
            ledger.fund(address, funding)
        wallets.register(wallet_id, MockSigner(address), activated=activated)
        return address

    return _make


@pytest.fixture
def services(ledger: MockLedger, wallets: WalletDirectory) -> Services:
    return build_services(
        store=MemoryStore(),
        gateway=ledger,
        wallets=wallets,
        ledger_options=FAST_LEDGER_OPTIONS,
    )
