"""Tests for configuration-driven wiring.

Tests cover:
- Composing the Hydra config and instantiating store and gateway
- Demo wallet registration on the simulator
- Overrides flowing into the service graph
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from hydra import compose, initialize_config_dir
from omegaconf import DictConfig

from rwa_core.ledger import MockLedger, XRPLGateway
from rwa_core.main import build_from_config
from rwa_core.persistence.store import MemoryStore

CONF_DIR = str(Path(__file__).resolve().parents[1] / "conf")


def _config(*overrides: str) -> DictConfig:
    with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
        return compose(config_name="main", overrides=list(overrides))


# ==============================================================================
# Wiring Tests
# ==============================================================================
class TestBuildFromConfig:
    """Tests for build_from_config."""

    def test_defaults(self) -> None:
        """Default config uses the simulator and the memory store."""
        services = build_from_config(_config())

        assert isinstance(services.gateway, MockLedger)
        assert isinstance(services.store, MemoryStore)
        assert services.ledger.max_retries == 3
        assert services.ledger.submit_timeout == 30.0
        assert services.tokenization.units_per_token == Decimal(100)
        assert services.orderbook.default_book_limit == 20

    @pytest.mark.asyncio
    async def test_demo_wallets(self) -> None:
        """Demo wallets get funded simulator accounts."""
        services = build_from_config(_config("wallets.demo=[alice,bob]", "wallets.demo_funding=250"))

        assert len(services.wallets) == 2
        alice = await services.wallets.get_wallet("alice")
        info = await services.ledger.account_info(alice.address)
        assert info is not None
        assert info.balance == Decimal(250)

    def test_overrides(self) -> None:
        """Command-line style overrides reach the services."""
        services = build_from_config(
            _config(
                "tokenization.units_per_token=1000",
                "dex.default_book_limit=50",
                "ledger.max_retries=5",
            )
        )

        assert services.tokenization.units_per_token == Decimal(1000)
        assert services.orderbook.default_book_limit == 50
        assert services.ledger.max_retries == 5

    def test_xrpl_gateway_skips_demo_wallets(self) -> None:
        """The real ledger gateway is selected and demo wallets are ignored."""
        services = build_from_config(_config("ledger=xrpl", "wallets.demo=[alice]"))

        assert isinstance(services.gateway, XRPLGateway)
        assert services.gateway.url == "https://s.altnet.rippletest.net:51234"
        assert len(services.wallets) == 0
