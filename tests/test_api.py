"""Tests for the HTTP API.

Tests cover:
- Response envelope for success and failure
- Error code and status mapping
- Route ordering of static asset paths
- An end-to-end asset and DEX flow over HTTP
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from rwa_core.api import create_app
from rwa_core.container import Services


# ==============================================================================
# Fixtures
# ==============================================================================
@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    """Test client running the application lifespan."""
    with TestClient(create_app(services)) as test_client:
        yield test_client


def _create_asset(client: TestClient, value: int = 750000) -> dict:
    response = client.post(
        "/asset/create",
        json={
            "name": "Sunset Villa",
            "asset_type": "real_estate",
            "value": value,
            "owner_wallet_id": "owner",
        },
    )
    assert response.status_code == 201
    return response.json()["data"]


# ==============================================================================
# Envelope Tests
# ==============================================================================
class TestEnvelope:
    """Tests for the response envelope and error mapping."""

    def test_health(self, client: TestClient) -> None:
        """Health reports ledger and store status."""
        response = client.get("/health")
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["ledger"] is True
        assert body["data"]["circuit_state"] == "CLOSED"
        assert "timestamp" in body
        assert response.headers["x-request-id"]

    def test_request_id_echoed(self, client: TestClient) -> None:
        """A caller-supplied request id is returned unchanged."""
        response = client.get("/health", headers={"x-request-id": "req-123"})
        assert response.headers["x-request-id"] == "req-123"

    def test_not_found(self, client: TestClient) -> None:
        """Unknown assets map to 404 NOT_FOUND."""
        response = client.get("/asset/does-not-exist")
        body = response.json()

        assert response.status_code == 404
        assert body["success"] is False
        assert body["code"] == "NOT_FOUND"
        assert body["data"] is None

    def test_validation_error(self, client: TestClient, make_wallet: Callable[..., str]) -> None:
        """Malformed bodies map to 400 VALIDATION_ERROR."""
        make_wallet("owner")
        response = client.post(
            "/asset/create",
            json={"name": "X", "asset_type": "real_estate", "value": -5, "owner_wallet_id": "owner"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_static_routes_not_captured(self, client: TestClient) -> None:
        """/asset/stats is served by the stats route, not the asset lookup."""
        response = client.get("/asset/stats")

        assert response.status_code == 200
        assert response.json()["data"]["total_assets"] == 0


# ==============================================================================
# Flow Tests
# ==============================================================================
class TestAssetFlow:
    """Asset lifecycle over HTTP."""

    def test_tokenize_transfer_redeem(
        self, client: TestClient, make_wallet: Callable[..., str]
    ) -> None:
        """Create, tokenize, transfer and partially redeem an asset."""
        issuer = make_wallet("owner")
        holder = make_wallet("holder")
        asset = _create_asset(client)
        assert asset["status"] == "pending"

        tokenized = client.post(f"/asset/{asset['id']}/tokenize").json()["data"]
        assert tokenized["currency_code"] == "SUN"
        assert tokenized["total_supply"] == "7500"

        again = client.post(f"/asset/{asset['id']}/tokenize")
        assert again.status_code == 409
        assert again.json()["code"] == "CONFLICT"

        trust = client.post(
            "/asset/trustline",
            json={"wallet_id": "holder", "currency_code": "SUN", "issuer_address": issuer, "limit": 10000},
        )
        assert trust.status_code == 200

        transfer = client.post(
            "/asset/transfer",
            json={
                "from_wallet_id": "owner",
                "to_address": holder,
                "currency_code": "SUN",
                "issuer_address": issuer,
                "amount": 1000,
            },
        ).json()["data"]
        assert transfer["available_supply"] == "6500"

        balance = client.get(f"/asset/balance/holder/SUN/{issuer}").json()["data"]
        assert balance["balance"] == "1000"

        redeemed = client.post(
            f"/asset/{asset['id']}/redeem",
            json={"wallet_id": "holder", "token_amount": 1000},
        ).json()["data"]
        assert redeemed["status"] == "tokenized"
        assert redeemed["asset_value_released"] == "100000"
        assert redeemed["redeemer_address"] == holder

        listing = client.get("/asset/wallet/owner").json()["data"]
        assert listing["total"] == 1
        assert listing["assets"][0]["available_supply"] == "6500"

        stats = client.get("/asset/stats").json()["data"]
        assert stats["tokenized_assets"] == 1

    def test_insufficient_tokens(self, client: TestClient, make_wallet: Callable[..., str]) -> None:
        """Redeeming more than held is a 400 INSUFFICIENT_TOKENS."""
        make_wallet("owner")
        make_wallet("holder")
        asset = _create_asset(client)
        client.post(f"/asset/{asset['id']}/tokenize")

        response = client.post(
            f"/asset/{asset['id']}/redeem",
            json={"wallet_id": "holder", "token_amount": 5},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INSUFFICIENT_TOKENS"


class TestDexFlow:
    """DEX endpoints over HTTP."""

    def test_offer_lifecycle(self, client: TestClient, make_wallet: Callable[..., str]) -> None:
        """Place, list and cancel an offer; cancelling again is 404."""
        make_wallet("trader")
        issuer = make_wallet("issuer")
        offer = client.post(
            "/dex/offer",
            json={
                "wallet_id": "trader",
                "taker_gets": "10",
                "taker_pays": {"currency": "ABC", "issuer": issuer, "value": "20"},
            },
        )
        assert offer.status_code == 201
        sequence = offer.json()["data"]["offer_sequence"]

        offers = client.get("/dex/offers/trader").json()["data"]["offers"]
        assert [o["sequence"] for o in offers] == [sequence]

        cancelled = client.delete(f"/dex/offer/trader/{sequence}")
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["status"] == "cancelled"

        missing = client.delete(f"/dex/offer/trader/{sequence}")
        assert missing.status_code == 404

        stats = client.get("/dex/stats").json()["data"]
        assert stats["total_orders"] == 1
        assert stats["cancelled_orders"] == 1
        assert stats["filled_orders"] == 0

    def test_market_order_and_history(
        self, client: TestClient, make_wallet: Callable[..., str]
    ) -> None:
        """A market order without liquidity is a completed empty trade."""
        make_wallet("trader")
        issuer = make_wallet("issuer")

        trade = client.post(
            "/dex/market-order",
            json={
                "wallet_id": "trader",
                "taker_gets": "5",
                "taker_pays": {"currency": "ABC", "issuer": issuer, "value": "10"},
            },
        ).json()["data"]
        assert trade["status"] == "completed"
        assert trade["fills"] == []

        history = client.get("/dex/trades/trader?limit=5").json()["data"]
        assert history["total"] == 1
        assert history["trades"][0]["id"] == trade["id"]

    def test_order_book_limit(self, client: TestClient, make_wallet: Callable[..., str]) -> None:
        """Order book limits outside 1..100 are a 400."""
        issuer = make_wallet("issuer")
        params = {"taker_gets_currency": "ABC", "taker_gets_issuer": issuer, "taker_pays_currency": "XRP"}

        bad = client.get("/dex/orderbook", params={**params, "limit": 0})
        assert bad.status_code == 400
        assert bad.json()["code"] == "VALIDATION_ERROR"

        good = client.get("/dex/orderbook", params=params).json()["data"]
        assert good["total_offers"] == 0
        assert good["limit"] == 20

    def test_pair_info(self, client: TestClient, make_wallet: Callable[..., str]) -> None:
        """Pair info for an empty pair has no spread."""
        issuer = make_wallet("issuer")
        data = client.get(f"/dex/pair/ABC/{issuer}/XRP/XRP").json()["data"]

        assert data["pair"] == "ABC/XRP"
        assert data["spread"] is None
