"""Tests for the ledger layer.

Tests cover:
- CircuitBreaker state transitions
- LedgerClient retries, timeouts, circuit breaking and result classification
- Per-account submission serialization (sequence numbers)
- WalletDirectory lookups
- XRPL adapter pieces that work offline
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import pytest

from rwa_core.common import (
    InsufficientFundsError,
    LedgerUnavailableError,
    OperationFailedError,
    TransactionRejectedError,
    WalletNotActivatedError,
    WalletNotFoundError,
    is_valid_address,
)
from rwa_core.ledger import (
    CircuitBreaker,
    CircuitState,
    LedgerClient,
    LedgerConnectionError,
    LedgerGateway,
    MockLedger,
    MockSigner,
    SigningGateway,
    WalletDirectory,
    XRPLGateway,
    XRPLSigner,
    generate_address,
)
from rwa_core.ledger.xrpl import _extract_result_code


def _client(ledger: MockLedger, **options: Any) -> LedgerClient:
    options.setdefault("retry_min_wait", 0)
    options.setdefault("retry_max_wait", 0)
    return LedgerClient(ledger, **options)


def _account(ledger: MockLedger, funding: int = 1000) -> MockSigner:
    address = generate_address()
    ledger.fund(address, funding)
    return MockSigner(address)


def _payment(source: MockSigner, destination: MockSigner, drops: str = "1000000") -> dict[str, Any]:
    return {
        "TransactionType": "Payment",
        "Account": source.address,
        "Destination": destination.address,
        "Amount": drops,
    }


# ==============================================================================
# Circuit Breaker Tests
# ==============================================================================
class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    def test_opens_after_threshold(self) -> None:
        """Breaker opens after consecutive failures."""
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=60.0)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.can_execute()

    def test_success_resets_failures(self) -> None:
        """A success in CLOSED state clears the failure count."""
        breaker = CircuitBreaker(failure_threshold=2)
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

    def test_half_open_recovery(self) -> None:
        """After the timeout, single trial calls are allowed; two successes close."""
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=0.0)
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

        assert breaker.can_execute()
        assert breaker.state == CircuitState.HALF_OPEN
        assert not breaker.can_execute()  # trial call in flight

        breaker.record_success()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.can_execute()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED

    def test_half_open_failure_reopens(self) -> None:
        """A failed trial call opens the breaker again."""
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=0.0)
        breaker.record_failure()
        assert breaker.can_execute()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN


# ==============================================================================
# Ledger Client Tests
# ==============================================================================
class TestLedgerClient:
    """Tests for LedgerClient against the simulator."""

    def test_mock_satisfies_protocol(self) -> None:
        """The simulator and wallet directory implement the gateway protocols."""
        assert isinstance(MockLedger(), LedgerGateway)
        assert isinstance(WalletDirectory(), SigningGateway)

    def test_rejects_bad_options(self) -> None:
        """Timeouts must be positive and at least one attempt is made."""
        with pytest.raises(ValueError):
            LedgerClient(MockLedger(), submit_timeout=0)
        with pytest.raises(ValueError):
            LedgerClient(MockLedger(), max_retries=0)

    @pytest.mark.asyncio
    async def test_submit_success(self, ledger: MockLedger) -> None:
        """A validated payment returns its hash and consumes a sequence."""
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger)

        result = await client.submit(_payment(source, destination), source)

        assert result.succeeded
        assert result.sequence == 1
        assert ledger.sequence_of(source.address) == 2
        assert await client.account_balance(destination.address) == Decimal(1001)

    @pytest.mark.asyncio
    async def test_retries_unsent_connection_errors(self, ledger: MockLedger) -> None:
        """Connection failures before send are retried."""
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger, max_retries=3)
        ledger.inject_connection_errors(2)

        result = await client.submit(_payment(source, destination), source)

        assert result.succeeded
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_possibly_sent_submission_not_retried(self, ledger: MockLedger) -> None:
        """A failure after the transaction may have left is never re-sent."""
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger, max_retries=3)
        ledger.inject_connection_errors(1, submitted=True)

        with pytest.raises(LedgerUnavailableError):
            await client.submit(_payment(source, destination), source)

        assert ledger.submitted == []
        assert ledger.sequence_of(source.address) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, ledger: MockLedger) -> None:
        """Exhausted retries surface as LedgerUnavailableError."""
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger, max_retries=2)
        ledger.inject_connection_errors(5)

        with pytest.raises(LedgerUnavailableError, match="after 2 attempts"):
            await client.submit(_payment(source, destination), source)

    @pytest.mark.asyncio
    async def test_circuit_opens_and_fails_fast(self, ledger: MockLedger) -> None:
        """After repeated failures calls are rejected without reaching the ledger."""
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger, max_retries=1, circuit_breaker_threshold=2)
        ledger.inject_connection_errors(10)

        for _ in range(2):
            with pytest.raises(LedgerUnavailableError):
                await client.submit(_payment(source, destination), source)

        assert client.circuit_state == CircuitState.OPEN
        assert not client.health_check()
        with pytest.raises(LedgerUnavailableError, match="circuit open"):
            await client.submit(_payment(source, destination), source)
        assert ledger._connection_failures == 8

    @pytest.mark.asyncio
    async def test_rejection_classified_not_retried(self, ledger: MockLedger) -> None:
        """Engine rejections map to the taxonomy and are attempted once."""
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger, max_retries=3)
        ledger.inject_failure("tecUNFUNDED_PAYMENT")

        with pytest.raises(InsufficientFundsError) as exc_info:
            await client.submit(_payment(source, destination), source)

        assert exc_info.value.result_code == "tecUNFUNDED_PAYMENT"
        assert len(ledger.submitted) == 1
        assert client.circuit_state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_unknown_result_code(self, ledger: MockLedger) -> None:
        """Unrecognized codes keep the raw code."""
        source, destination = _account(ledger), _account(ledger)
        ledger.inject_failure("tecBRAND_NEW")

        with pytest.raises(OperationFailedError) as exc_info:
            await _client(ledger).submit(_payment(source, destination), source)
        assert exc_info.value.result_code == "tecBRAND_NEW"

    @pytest.mark.asyncio
    async def test_missing_destination_rejected(self, ledger: MockLedger) -> None:
        """Payments to accounts that do not exist are deterministic rejections."""
        source = _account(ledger)
        ghost = MockSigner(generate_address())

        with pytest.raises(TransactionRejectedError) as exc_info:
            await _client(ledger).submit(_payment(source, ghost), source)
        assert exc_info.value.result_code == "tecNO_DST"

    @pytest.mark.asyncio
    async def test_submit_timeout(self) -> None:
        """A slow ledger is reported as unavailable."""
        ledger = MockLedger(latency=0.5)
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger, submit_timeout=0.05)

        with pytest.raises(LedgerUnavailableError, match="timed out"):
            await client.submit(_payment(source, destination), source)

    @pytest.mark.asyncio
    async def test_queries_retried(self, ledger: MockLedger) -> None:
        """Idempotent queries retry through transient failures."""
        signer = _account(ledger, funding=250)
        client = _client(ledger, max_retries=3)
        ledger.inject_query_errors(2)

        info = await client.account_info(signer.address)

        assert info is not None
        assert info.balance == Decimal(250)
        assert await client.account_info(generate_address()) is None


# ==============================================================================
# Sequence Serialization Tests
# ==============================================================================
class TestSequenceSerialization:
    """Concurrent submissions from one account."""

    @pytest.mark.asyncio
    async def test_unserialized_submissions_race(self) -> None:
        """Without the client, two submissions autofill the same sequence."""
        ledger = MockLedger(latency=0.01)
        source, destination = _account(ledger), _account(ledger)

        results = await asyncio.gather(
            ledger.submit_transaction(_payment(source, destination), source),
            ledger.submit_transaction(_payment(source, destination), source),
        )

        assert sorted(r.result_code for r in results) == ["tefPAST_SEQ", "tesSUCCESS"]

    @pytest.mark.asyncio
    async def test_client_serializes_per_account(self) -> None:
        """Through the client each submission gets its own sequence."""
        ledger = MockLedger(latency=0.01)
        source, destination = _account(ledger), _account(ledger)
        client = _client(ledger)

        results = await asyncio.gather(
            *(client.submit(_payment(source, destination), source) for _ in range(3))
        )

        assert sorted(r.sequence for r in results) == [1, 2, 3]
        assert all(tx.result_code == "tesSUCCESS" for tx in ledger.submitted)


# ==============================================================================
# Wallet Directory Tests
# ==============================================================================
class TestWalletDirectory:
    """Tests for WalletDirectory."""

    @pytest.mark.asyncio
    async def test_lookup(self) -> None:
        """Registered wallets resolve to their address and signer."""
        wallets = WalletDirectory()
        signer = MockSigner(generate_address())
        wallets.register("alice", signer)

        info = await wallets.get_wallet("alice")
        assert info.address == signer.address
        assert info.activated
        assert await wallets.get_signer("alice") is signer
        assert len(wallets) == 1

    @pytest.mark.asyncio
    async def test_unknown_wallet(self) -> None:
        """Unknown ids raise WalletNotFoundError."""
        with pytest.raises(WalletNotFoundError):
            await WalletDirectory().get_signer("nobody")

    @pytest.mark.asyncio
    async def test_not_activated(self) -> None:
        """Inactive wallets cannot sign until activated."""
        wallets = WalletDirectory()
        wallets.register("bob", MockSigner(generate_address()), activated=False)

        with pytest.raises(WalletNotActivatedError):
            await wallets.get_signer("bob")
        wallets.set_activated("bob")
        assert await wallets.get_signer("bob")


# ==============================================================================
# XRPL Adapter Tests
# ==============================================================================
class TestXRPLAdapter:
    """Offline checks of the xrpl-py adapter."""

    def test_signer_from_seed(self) -> None:
        """Signers derive the classic address from the seed."""
        from xrpl.wallet import Wallet

        wallet = Wallet.create()
        signer = XRPLSigner(wallet.seed)
        assert signer.address == wallet.classic_address
        assert is_valid_address(signer.address)

    def test_result_code_extraction(self) -> None:
        """Engine codes are pulled out of xrpl-py error messages."""
        assert _extract_result_code("Transaction failed: tecUNFUNDED_PAYMENT") == (
            "tecUNFUNDED_PAYMENT"
        )
        assert _extract_result_code("Request timed out") is None

    @pytest.mark.asyncio
    async def test_requires_start(self) -> None:
        """Calls before start fail as connection errors."""
        gateway = XRPLGateway("http://127.0.0.1:1")
        with pytest.raises(LedgerConnectionError):
            await gateway.get_account_info("rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh")
