"""XRP Ledger gateway backed by xrpl-py.

Translates between the ledger-JSON dictionaries used by the orchestration
layer and xrpl-py's request/transaction models. Transport failures surface as
``LedgerConnectionError``; engine results are reported verbatim in
``SubmissionResult.result_code`` and classified by ``LedgerClient``.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Final

import structlog

from rwa_core.ledger.codec import drops_to_native
from rwa_core.ledger.protocol import (
    AccountInfo,
    LedgerConnectionError,
    SubmissionResult,
    TrustLine,
)

if TYPE_CHECKING:
    from rwa_core.ledger.protocol import Signer

log = structlog.get_logger()

DEFAULT_RPC_URL: Final[str] = "https://s.altnet.rippletest.net:51234"
_RESULT_CODE_RE: Final[re.Pattern[str]] = re.compile(r"\b(te[cfmrs][A-Z_]+)\b")


def _extract_result_code(message: str) -> str | None:
    match = _RESULT_CODE_RE.search(message)
    return match.group(1) if match else None


# ==============================================================================
# Signer
# ==============================================================================
class XRPLSigner:
    """Signs xrpl-py transaction models with a seed-derived wallet."""

    def __init__(self, seed: str) -> None:
        from xrpl.wallet import Wallet

        self._wallet = Wallet.from_seed(seed)

    @property
    def address(self) -> str:
        return str(self._wallet.classic_address)

    def sign(self, transaction: Any) -> Any:
        from xrpl.transaction import sign

        return sign(transaction, self._wallet)


# ==============================================================================
# Gateway
# ==============================================================================
class XRPLGateway:
    """LedgerGateway over the JSON-RPC API of an XRPL node.

    Attributes:
        url: JSON-RPC endpoint.
    """

    def __init__(self, url: str = DEFAULT_RPC_URL) -> None:
        self.url = url
        self.client = None
        self._started = False

    async def start(self) -> None:
        """Create the JSON-RPC client."""
        from xrpl.asyncio.clients import AsyncJsonRpcClient

        if self._started:
            return
        self.client = AsyncJsonRpcClient(self.url)
        self._started = True
        log.info("XRPL gateway started", url=self.url)

    async def stop(self) -> None:
        self.client = None
        self._started = False
        log.info("XRPL gateway stopped", url=self.url)

    def _require_client(self) -> Any:
        if self.client is None:
            raise LedgerConnectionError("XRPL gateway not started")
        return self.client

    # --------------------------------------------------------------------------
    # Submission
    # --------------------------------------------------------------------------
    async def submit_transaction(self, transaction: dict[str, Any], signer: Signer) -> SubmissionResult:
        import httpx
        from xrpl.asyncio.transaction import (
            XRPLReliableSubmissionException,
            autofill,
            submit_and_wait,
        )
        from xrpl.models.transactions.transaction import Transaction

        client = self._require_client()
        model = Transaction.from_xrpl(transaction)

        try:
            prepared = await autofill(model, client)
        except httpx.HTTPError as exc:
            raise LedgerConnectionError(f"Autofill failed: {exc}") from exc

        signed = signer.sign(prepared)
        try:
            response = await submit_and_wait(signed, client)
        except XRPLReliableSubmissionException as exc:
            result_code = _extract_result_code(str(exc))
            if result_code is None:
                raise LedgerConnectionError(str(exc), submitted=True) from exc
            return SubmissionResult(
                tx_hash=signed.get_hash(),
                result_code=result_code,
                sequence=signed.sequence,
            )
        except httpx.HTTPError as exc:
            raise LedgerConnectionError(f"Submission failed: {exc}", submitted=True) from exc

        result = response.result
        meta = result.get("meta", {})
        return SubmissionResult(
            tx_hash=result.get("hash", signed.get_hash()),
            ledger_index=result.get("ledger_index"),
            result_code=meta.get("TransactionResult", "tesSUCCESS"),
            sequence=signed.sequence,
            meta=meta,
        )

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------
    async def _request(self, request: Any) -> dict[str, Any] | None:
        """Run a request; None for actNotFound, raise on transport errors."""
        import httpx

        client = self._require_client()
        try:
            response = await client.request(request)
        except httpx.HTTPError as exc:
            raise LedgerConnectionError(f"{request.method} failed: {exc}") from exc

        if response.is_successful():
            return response.result
        if response.result.get("error") == "actNotFound":
            return None
        raise LedgerConnectionError(
            f"{request.method} failed: {response.result.get('error_message') or response.result}"
        )

    async def get_account_info(self, address: str) -> AccountInfo | None:
        from xrpl.models.requests import AccountInfo as AccountInfoRequest

        result = await self._request(AccountInfoRequest(account=address, ledger_index="validated"))
        if result is None:
            return None
        data = result["account_data"]
        return AccountInfo(
            address=address,
            balance=drops_to_native(data["Balance"]),
            sequence=int(data["Sequence"]),
            owner_count=int(data.get("OwnerCount", 0)),
        )

    async def get_account_balance(self, address: str) -> Decimal:
        info = await self.get_account_info(address)
        return info.balance if info else Decimal(0)

    async def get_trust_lines(self, address: str) -> list[TrustLine]:
        from xrpl.models.requests import AccountLines

        result = await self._request(AccountLines(account=address, ledger_index="validated"))
        if result is None:
            return []
        return [
            TrustLine(
                currency=line["currency"],
                issuer=line["account"],
                balance=Decimal(line["balance"]),
                limit=Decimal(line["limit"]),
            )
            for line in result.get("lines", [])
        ]

    async def get_order_book(
        self,
        taker_gets: dict[str, str],
        taker_pays: dict[str, str],
        limit: int,
    ) -> list[dict[str, Any]]:
        from xrpl.models.requests import BookOffers

        result = await self._request(
            BookOffers(
                taker_gets=_currency_model(taker_gets),
                taker_pays=_currency_model(taker_pays),
                limit=limit,
                ledger_index="validated",
            )
        )
        return list(result.get("offers", [])) if result else []

    async def get_account_offers(self, address: str) -> list[dict[str, Any]]:
        from xrpl.models.requests import AccountOffers

        result = await self._request(AccountOffers(account=address, ledger_index="validated"))
        return list(result.get("offers", [])) if result else []


def _currency_model(spec: dict[str, str]) -> Any:
    from xrpl.models.currencies import XRP, IssuedCurrency

    if "issuer" not in spec:
        return XRP()
    return IssuedCurrency(currency=spec["currency"], issuer=spec["issuer"])
