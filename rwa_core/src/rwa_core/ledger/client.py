"""Resilient access to a LedgerGateway.

Every call the orchestration layer makes to the ledger goes through
``LedgerClient``, which adds:

- Bounded timeouts (separate budgets for submissions and queries)
- Retry with exponential backoff for transient connection failures
- Circuit breaker that fails fast while the ledger is unreachable
- Per-account serialization of submissions (sequence-number safety)
- Classification of non-success engine results into the error taxonomy

Design Decisions:
- Deterministic rejections are never retried
- A submission that may have reached the network is never re-sent; a
  timeout after send is reported as LedgerUnavailableError
- Queries are idempotent and retried on both timeouts and connection errors
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

import structlog
from tenacity import (
    RetryError,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rwa_core.common.errors import (
    LedgerUnavailableError,
    RWAError,
    classify_result,
)
from rwa_core.common.locks import KeyedLock
from rwa_core.ledger.protocol import LedgerConnectionError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from rwa_core.ledger.protocol import (
        AccountInfo,
        LedgerGateway,
        Signer,
        SubmissionResult,
        TrustLine,
    )

log = structlog.get_logger()


# ==============================================================================
# Constants
# ==============================================================================
DEFAULT_SUBMIT_TIMEOUT: Final[float] = 30.0  # seconds
DEFAULT_QUERY_TIMEOUT: Final[float] = 10.0
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_MIN_WAIT: Final[float] = 1.0
DEFAULT_RETRY_MAX_WAIT: Final[float] = 10.0
DEFAULT_CIRCUIT_BREAKER_THRESHOLD: Final[int] = 5
DEFAULT_CIRCUIT_BREAKER_TIMEOUT: Final[float] = 60.0


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


# ==============================================================================
# Circuit Breaker
# ==============================================================================
@dataclass
class CircuitBreaker:
    """Fails fast after repeated ledger connection failures.

    States:
    - CLOSED: requests pass through
    - OPEN: requests rejected until reset_timeout elapses
    - HALF_OPEN: one trial request at a time; two successes close again

    Only transport failures count. A rejected transaction proves the ledger
    is reachable and counts as a success.
    """

    failure_threshold: int = DEFAULT_CIRCUIT_BREAKER_THRESHOLD
    reset_timeout: float = DEFAULT_CIRCUIT_BREAKER_TIMEOUT
    state: CircuitState = field(default=CircuitState.CLOSED)
    failure_count: int = field(default=0)
    last_failure_time: float = field(default=0.0)
    success_count: int = field(default=0)
    half_open_in_flight: bool = field(default=False)

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.half_open_in_flight = False
            self.success_count += 1
            if self.success_count >= 2:
                self._close()
        else:
            self.failure_count = 0

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == CircuitState.HALF_OPEN:
            self.half_open_in_flight = False
            self._open()
        elif self.failure_count >= self.failure_threshold:
            self._open()

    def can_execute(self) -> bool:
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if (time.monotonic() - self.last_failure_time) >= self.reset_timeout:
                self._half_open()
            else:
                return False

        if self.half_open_in_flight:
            return False
        self.half_open_in_flight = True
        return True

    def time_until_reset(self) -> float:
        if self.state != CircuitState.OPEN:
            return 0.0
        elapsed = time.monotonic() - self.last_failure_time
        return max(0.0, self.reset_timeout - elapsed)

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.success_count = 0
        self.half_open_in_flight = False
        log.warning(
            "Ledger circuit breaker OPEN",
            failures=self.failure_count,
            reset_in=self.reset_timeout,
        )

    def _half_open(self) -> None:
        self.state = CircuitState.HALF_OPEN
        self.success_count = 0
        self.half_open_in_flight = False
        log.info("Ledger circuit breaker HALF_OPEN, testing recovery")

    def _close(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.half_open_in_flight = False
        log.info("Ledger circuit breaker CLOSED, recovered")


def _is_unsent_failure(exc: BaseException) -> bool:
    return isinstance(exc, LedgerConnectionError) and not exc.submitted


# ==============================================================================
# Ledger Client
# ==============================================================================
class LedgerClient:
    """Timeout, retry and classification wrapper around a LedgerGateway.

    Attributes:
        gateway: Underlying ledger connectivity.
        account_locks: Per-account submission locks.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        submit_timeout: float = DEFAULT_SUBMIT_TIMEOUT,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_min_wait: float = DEFAULT_RETRY_MIN_WAIT,
        retry_max_wait: float = DEFAULT_RETRY_MAX_WAIT,
        circuit_breaker_threshold: int = DEFAULT_CIRCUIT_BREAKER_THRESHOLD,
        circuit_breaker_timeout: float = DEFAULT_CIRCUIT_BREAKER_TIMEOUT,
    ) -> None:
        if submit_timeout <= 0 or query_timeout <= 0:
            msg = "Ledger timeouts must be positive"
            raise ValueError(msg)
        if max_retries < 1:
            msg = f"max_retries must be >= 1, got {max_retries}"
            raise ValueError(msg)

        self.gateway = gateway
        self.submit_timeout = submit_timeout
        self.query_timeout = query_timeout
        self.max_retries = max_retries
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.account_locks = KeyedLock("ledger-account")
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_breaker_threshold,
            reset_timeout=circuit_breaker_timeout,
        )

    @property
    def circuit_state(self) -> CircuitState:
        return self._circuit_breaker.state

    def health_check(self) -> bool:
        return self._circuit_breaker.state != CircuitState.OPEN

    # --------------------------------------------------------------------------
    # Submission
    # --------------------------------------------------------------------------
    async def submit(
        self,
        transaction: dict[str, Any],
        signer: Signer,
    ) -> SubmissionResult:
        """Submit a transaction and return only on ledger-confirmed success.

        Submissions from one account are serialized so each autofills a fresh
        sequence number.

        Raises:
            LedgerUnavailableError: Connection failure, timeout or open circuit.
            RWAError: Classified ledger rejection (never retried).
        """
        tx_type = str(transaction.get("TransactionType", "Transaction"))
        async with self.account_locks.hold(signer.address):
            result = await self._call(
                f"submit {tx_type}",
                lambda: self.gateway.submit_transaction(transaction, signer),
                timeout=self.submit_timeout,
                retry_predicate=retry_if_exception(_is_unsent_failure),
                account=signer.address,
            )

        if not result.succeeded:
            error = classify_result(
                result.result_code, context=tx_type, transaction_hash=result.tx_hash
            )
            log.warning(
                "Ledger rejected transaction",
                tx_type=tx_type,
                account=signer.address,
                result_code=result.result_code,
                tx_hash=result.tx_hash,
                error_code=error.code,
            )
            raise error

        log.info(
            "Transaction validated",
            tx_type=tx_type,
            account=signer.address,
            tx_hash=result.tx_hash,
            ledger_index=result.ledger_index,
            sequence=result.sequence,
        )
        return result

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------
    async def account_info(self, address: str) -> AccountInfo | None:
        return await self._query("account_info", lambda: self.gateway.get_account_info(address))

    async def account_balance(self, address: str) -> Decimal:
        return await self._query(
            "account_balance", lambda: self.gateway.get_account_balance(address)
        )

    async def trust_lines(self, address: str) -> list[TrustLine]:
        return await self._query("account_lines", lambda: self.gateway.get_trust_lines(address))

    async def order_book(
        self,
        taker_gets: dict[str, str],
        taker_pays: dict[str, str],
        limit: int,
    ) -> list[dict[str, Any]]:
        return await self._query(
            "book_offers",
            lambda: self.gateway.get_order_book(taker_gets, taker_pays, limit),
        )

    async def account_offers(self, address: str) -> list[dict[str, Any]]:
        return await self._query(
            "account_offers", lambda: self.gateway.get_account_offers(address)
        )

    async def _query(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Any:
        return await self._call(
            operation,
            call,
            timeout=self.query_timeout,
            retry_predicate=retry_if_exception_type(
                (LedgerConnectionError, asyncio.TimeoutError)
            ),
        )

    # --------------------------------------------------------------------------
    # Shared retry / timeout / breaker plumbing
    # --------------------------------------------------------------------------
    async def _call(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        *,
        timeout: float,
        retry_predicate: Any,
        account: str | None = None,
    ) -> Any:
        if not self._circuit_breaker.can_execute():
            reset_in = self._circuit_breaker.time_until_reset()
            log.warning("Ledger call rejected: circuit breaker open", operation=operation)
            raise LedgerUnavailableError(
                f"Ledger unavailable, circuit open (resets in {reset_in:.1f}s)"
            )

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(
                multiplier=1,
                min=self.retry_min_wait,
                max=self.retry_max_wait,
            ),
            retry=retry_predicate,
            before_sleep=lambda rs: log.warning(
                "Retrying ledger call",
                operation=operation,
                attempt=rs.attempt_number,
                account=account,
            ),
        )
        async def _attempt() -> Any:
            return await asyncio.wait_for(call(), timeout=timeout)

        try:
            result = await _attempt()
        except RetryError as e:
            self._circuit_breaker.record_failure()
            cause = e.last_attempt.exception()
            log.error(
                "Ledger call exhausted retries",
                operation=operation,
                attempts=self.max_retries,
                error=str(cause),
            )
            raise LedgerUnavailableError(
                f"{operation} failed after {self.max_retries} attempts: {cause}"
            ) from cause
        except asyncio.TimeoutError as e:
            self._circuit_breaker.record_failure()
            log.error("Ledger call timed out", operation=operation, timeout=timeout)
            raise LedgerUnavailableError(f"{operation} timed out after {timeout}s") from e
        except LedgerConnectionError as e:
            self._circuit_breaker.record_failure()
            log.error(
                "Ledger connection failed",
                operation=operation,
                submitted=e.submitted,
                error=str(e),
            )
            raise LedgerUnavailableError(f"{operation} failed: {e}") from e
        except RWAError:
            self._circuit_breaker.record_success()
            raise

        self._circuit_breaker.record_success()
        return result
