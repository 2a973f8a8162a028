"""In-memory ledger simulator for testing and development.

``MockLedger`` implements the LedgerGateway protocol with enough ledger
behaviour to exercise the orchestration layer end to end:

- Accounts with native balances and monotonically increasing sequences
- Autofill/submit split by an await, so unserialized submissions from one
  account race exactly like on a real network (``tefPAST_SEQ``)
- Trust lines and issued-currency payments (self-issuance model)
- Resting offers, crossing at the resting offer's quality, and
  immediate-or-cancel offers
- Transaction metadata in ledger format (Created/Modified/DeletedNode)
- Failure injection: engine result codes and connection errors
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Final

import structlog

from rwa_core.common.types import CurrencySpec
from rwa_core.ledger.codec import (
    TF_IMMEDIATE_OR_CANCEL,
    decode_wire,
    format_decimal,
    to_ripple_time,
)
from rwa_core.ledger.protocol import (
    AccountInfo,
    LedgerConnectionError,
    SubmissionResult,
    TrustLine,
)

log = structlog.get_logger()

_BASE58_ALPHABET: Final[str] = "rpshnaf39wBUDNEGHJKLM4PQRST7VWXYZ2bcdeCg65jkm8oFqi1tuvAxyz"


def generate_address() -> str:
    """Random address in classic format (no valid checksum)."""
    body = "".join(secrets.choice(_BASE58_ALPHABET) for _ in range(33))
    return f"r{body}"


@dataclass
class _Account:
    address: str
    balance: Decimal
    sequence: int = 1
    owner_count: int = 0


@dataclass
class _Line:
    account: str
    currency: str
    issuer: str
    balance: Decimal = Decimal(0)
    limit: Decimal = Decimal(0)


@dataclass
class _Offer:
    account: str
    sequence: int
    gets_spec: CurrencySpec
    gets: Decimal
    pays_spec: CurrencySpec
    pays: Decimal
    flags: int = 0
    expiration: int | None = None

    @property
    def quality(self) -> Decimal:
        return self.pays / self.gets

    def node_fields(self, gets: Decimal | None = None, pays: Decimal | None = None) -> dict[str, Any]:
        return {
            "Account": self.account,
            "Sequence": self.sequence,
            "TakerGets": _wire(self.gets_spec, self.gets if gets is None else gets),
            "TakerPays": _wire(self.pays_spec, self.pays if pays is None else pays),
        }


@dataclass
class SubmittedTransaction:
    """Record of one submission as seen by the simulator."""

    account: str
    sequence: int
    transaction_type: str
    result_code: str
    tx_hash: str


@dataclass
class _Injected:
    result_code: str
    transaction_type: str | None = None


def _wire(spec: CurrencySpec, value: Decimal) -> str | dict[str, str]:
    if spec.is_native:
        return str(int(value * 1_000_000))
    return {"currency": spec.currency, "issuer": str(spec.issuer), "value": format_decimal(value)}


def _book_key(gets: CurrencySpec, pays: CurrencySpec) -> tuple[str, str]:
    return (gets.label(), pays.label())


class _Rejected(Exception):
    def __init__(self, result_code: str) -> None:
        self.result_code = result_code
        super().__init__(result_code)


class MockSigner:
    """Signer for simulator accounts."""

    def __init__(self, address: str) -> None:
        self._address = address

    @property
    def address(self) -> str:
        return self._address

    def sign(self, transaction: Any) -> Any:
        signed = dict(transaction)
        signed["SigningPubKey"] = f"mock:{self._address}"
        signed["TxnSignature"] = secrets.token_hex(32).upper()
        return signed


class MockLedger:
    """Simulated ledger implementing the LedgerGateway protocol.

    Attributes:
        latency: Seconds between autofill and apply (submission round trip).
        submitted: Every submission, in apply order.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.ledger_index = 1000
        self.submitted: list[SubmittedTransaction] = []
        self._accounts: dict[str, _Account] = {}
        self._lines: dict[tuple[str, str, str], _Line] = {}
        self._books: dict[tuple[str, str], list[_Offer]] = {}
        self._minted: set[tuple[str, str]] = set()
        self._injected: list[_Injected] = []
        self._connection_failures = 0
        self._connection_failures_submitted = False
        self._query_failures = 0

    async def start(self) -> None:
        log.info("Mock ledger started", latency=self.latency)

    async def stop(self) -> None:
        log.info("Mock ledger stopped", transactions=len(self.submitted))

    # --------------------------------------------------------------------------
    # Test / dev helpers
    # --------------------------------------------------------------------------
    def fund(self, address: str, amount: Decimal | int | str = 1000) -> None:
        """Create (activate) an account or top up its native balance."""
        account = self._accounts.get(address)
        if account is None:
            self._accounts[address] = _Account(address=address, balance=Decimal(str(amount)))
            log.info("Mock account funded", address=address, amount=str(amount))
        else:
            account.balance += Decimal(str(amount))

    def set_trust_line(
        self,
        address: str,
        currency: str,
        issuer: str,
        limit: Decimal | int | str,
        balance: Decimal | int | str = 0,
    ) -> None:
        line = self._line(address, currency, issuer, create=True)
        line.limit = Decimal(str(limit))
        line.balance = Decimal(str(balance))

    def inject_failure(self, result_code: str, transaction_type: str | None = None) -> None:
        """Make the next matching submission finish with result_code."""
        self._injected.append(_Injected(result_code, transaction_type))

    def inject_connection_errors(self, count: int, *, submitted: bool = False) -> None:
        """Fail the next ``count`` submissions at the transport level."""
        self._connection_failures = count
        self._connection_failures_submitted = submitted

    def inject_query_errors(self, count: int) -> None:
        self._query_failures = count

    def issued_balance(self, address: str, currency: str, issuer: str) -> Decimal:
        line = self._lines.get((address, currency, issuer))
        return line.balance if line else Decimal(0)

    def sequence_of(self, address: str) -> int:
        return self._accounts[address].sequence

    # --------------------------------------------------------------------------
    # LedgerGateway: queries
    # --------------------------------------------------------------------------
    async def get_account_info(self, address: str) -> AccountInfo | None:
        self._maybe_fail_query()
        account = self._accounts.get(address)
        if account is None:
            return None
        return AccountInfo(
            address=address,
            balance=account.balance,
            sequence=account.sequence,
            owner_count=account.owner_count,
        )

    async def get_account_balance(self, address: str) -> Decimal:
        self._maybe_fail_query()
        account = self._accounts.get(address)
        return account.balance if account else Decimal(0)

    async def get_trust_lines(self, address: str) -> list[TrustLine]:
        self._maybe_fail_query()
        return [
            TrustLine(
                currency=line.currency,
                issuer=line.issuer,
                balance=line.balance,
                limit=line.limit,
            )
            for (account, _, _), line in self._lines.items()
            if account == address
        ]

    async def get_order_book(
        self,
        taker_gets: dict[str, str],
        taker_pays: dict[str, str],
        limit: int,
    ) -> list[dict[str, Any]]:
        self._maybe_fail_query()
        gets = CurrencySpec(currency=taker_gets["currency"], issuer=taker_gets.get("issuer"))
        pays = CurrencySpec(currency=taker_pays["currency"], issuer=taker_pays.get("issuer"))
        offers = self._sorted_book(gets, pays)[:limit]
        return [
            {
                **offer.node_fields(),
                "Flags": offer.flags,
                "quality": format_decimal(offer.quality),
            }
            for offer in offers
        ]

    async def get_account_offers(self, address: str) -> list[dict[str, Any]]:
        self._maybe_fail_query()
        result = []
        for book in self._books.values():
            for offer in book:
                if offer.account != address:
                    continue
                result.append(
                    {
                        "seq": offer.sequence,
                        "taker_gets": _wire(offer.gets_spec, offer.gets),
                        "taker_pays": _wire(offer.pays_spec, offer.pays),
                        "quality": format_decimal(offer.quality),
                        "flags": offer.flags,
                        "expiration": offer.expiration,
                    }
                )
        return sorted(result, key=lambda o: o["seq"])

    def _maybe_fail_query(self) -> None:
        if self._query_failures > 0:
            self._query_failures -= 1
            raise LedgerConnectionError("Simulated query connection failure")

    # --------------------------------------------------------------------------
    # LedgerGateway: submission
    # --------------------------------------------------------------------------
    async def submit_transaction(self, transaction: dict[str, Any], signer: Any) -> SubmissionResult:
        if self._connection_failures > 0:
            self._connection_failures -= 1
            raise LedgerConnectionError(
                "Simulated connection failure",
                submitted=self._connection_failures_submitted,
            )

        address = transaction.get("Account")
        account = self._accounts.get(str(address))
        if account is None:
            return self._record(str(address), 0, transaction, "terNO_ACCOUNT")

        # Autofill reads the account's next sequence ...
        prepared = dict(transaction)
        prepared.setdefault("Sequence", account.sequence)
        prepared.setdefault("Fee", "12")

        # ... and the network round trip lets other coroutines run.
        await asyncio.sleep(self.latency)

        signed = signer.sign(prepared)
        sequence = int(signed["Sequence"])
        if sequence < account.sequence:
            return self._record(account.address, sequence, signed, "tefPAST_SEQ")
        if sequence > account.sequence:
            return self._record(account.address, sequence, signed, "terPRE_SEQ")

        injected = self._take_injected(str(signed.get("TransactionType")))
        if injected is not None:
            if injected.startswith("tec"):
                account.sequence += 1
            return self._record(account.address, sequence, signed, injected)

        account.sequence += 1
        try:
            nodes = self._apply(signed)
        except _Rejected as rejected:
            return self._record(account.address, sequence, signed, rejected.result_code)
        return self._record(account.address, sequence, signed, "tesSUCCESS", nodes)

    def _take_injected(self, transaction_type: str) -> str | None:
        for index, injected in enumerate(self._injected):
            if injected.transaction_type in (None, transaction_type):
                del self._injected[index]
                return injected.result_code
        return None

    def _record(
        self,
        address: str,
        sequence: int,
        transaction: dict[str, Any],
        result_code: str,
        nodes: list[dict[str, Any]] | None = None,
    ) -> SubmissionResult:
        self.ledger_index += 1
        payload = json.dumps(transaction, sort_keys=True, default=str)
        tx_hash = hashlib.sha256(f"{payload}:{self.ledger_index}".encode()).hexdigest().upper()
        tx_type = str(transaction.get("TransactionType"))
        self.submitted.append(
            SubmittedTransaction(
                account=address,
                sequence=sequence,
                transaction_type=tx_type,
                result_code=result_code,
                tx_hash=tx_hash,
            )
        )
        log.debug(
            "Mock transaction applied",
            tx_type=tx_type,
            account=address,
            sequence=sequence,
            result_code=result_code,
        )
        return SubmissionResult(
            tx_hash=tx_hash,
            ledger_index=self.ledger_index,
            result_code=result_code,
            sequence=sequence,
            meta={"TransactionResult": result_code, "AffectedNodes": nodes or []},
        )

    # --------------------------------------------------------------------------
    # Transaction engine
    # --------------------------------------------------------------------------
    def _apply(self, tx: dict[str, Any]) -> list[dict[str, Any]]:
        handlers = {
            "Payment": self._apply_payment,
            "TrustSet": self._apply_trust_set,
            "OfferCreate": self._apply_offer_create,
            "OfferCancel": self._apply_offer_cancel,
        }
        handler = handlers.get(str(tx.get("TransactionType")))
        if handler is None:
            raise _Rejected("temDISABLED")
        return handler(tx)

    def _line(self, account: str, currency: str, issuer: str, create: bool = False) -> _Line:
        key = (account, currency, issuer)
        line = self._lines.get(key)
        if line is None:
            if not create:
                raise _Rejected("tecNO_LINE")
            line = _Line(account=account, currency=currency, issuer=issuer)
            self._lines[key] = line
        return line

    def _apply_trust_set(self, tx: dict[str, Any]) -> list[dict[str, Any]]:
        spec, limit = decode_wire(tx["LimitAmount"])
        if spec.is_native or spec.issuer is None:
            raise _Rejected("temBAD_CURRENCY")
        if limit < 0:
            raise _Rejected("temBAD_AMOUNT")
        account = tx["Account"]
        if (account, spec.currency, spec.issuer) not in self._lines:
            self._accounts[account].owner_count += 1
        line = self._line(account, spec.currency, spec.issuer, create=True)
        line.limit = limit
        return [
            {
                "ModifiedNode": {
                    "LedgerEntryType": "RippleState",
                    "FinalFields": {"LimitAmount": tx["LimitAmount"]},
                }
            }
        ]

    def _apply_payment(self, tx: dict[str, Any]) -> list[dict[str, Any]]:
        source = tx["Account"]
        destination = tx["Destination"]
        if destination not in self._accounts:
            raise _Rejected("tecNO_DST")
        spec, value = decode_wire(tx["Amount"])
        if value <= 0:
            raise _Rejected("temBAD_AMOUNT")

        if spec.is_native:
            if self._accounts[source].balance < value:
                raise _Rejected("tecUNFUNDED_PAYMENT")
            self._accounts[source].balance -= value
            self._accounts[destination].balance += value
            return []

        issuer = str(spec.issuer)
        if source == issuer and destination == issuer:
            # Self-issuance: the first payment mints into the issuer's own line
            # (capped by its limit); later ones retire tokens from it.
            line = self._line(issuer, spec.currency, issuer)
            token = (spec.currency, issuer)
            if token not in self._minted:
                if line.balance + value > line.limit:
                    raise _Rejected("tecPATH_PARTIAL")
                line.balance += value
                self._minted.add(token)
            elif line.balance < value:
                raise _Rejected("tecUNFUNDED_PAYMENT")
            else:
                line.balance -= value
            return []

        sender_line = self._lines.get((source, spec.currency, issuer))
        if sender_line is None or sender_line.balance < value:
            raise _Rejected("tecUNFUNDED_PAYMENT")

        if destination != issuer:
            receiver_line = self._line(destination, spec.currency, issuer)
            if receiver_line.balance + value > receiver_line.limit:
                raise _Rejected("tecPATH_PARTIAL")
            receiver_line.balance += value
        # Paying the issuer retires the tokens.
        sender_line.balance -= value
        return []

    def _available(self, account: str, spec: CurrencySpec) -> Decimal:
        if spec.is_native:
            return self._accounts[account].balance
        line = self._lines.get((account, spec.currency, str(spec.issuer)))
        return line.balance if line else Decimal(0)

    def _move(self, source: str, destination: str, spec: CurrencySpec, value: Decimal) -> None:
        if spec.is_native:
            self._accounts[source].balance -= value
            self._accounts[destination].balance += value
            return
        issuer = str(spec.issuer)
        if source != issuer or (source, spec.currency, issuer) in self._lines:
            self._line(source, spec.currency, issuer, create=True).balance -= value
        if destination != issuer:
            self._line(destination, spec.currency, issuer, create=True).balance += value

    def _sorted_book(self, gets: CurrencySpec, pays: CurrencySpec) -> list[_Offer]:
        book = self._books.get(_book_key(gets, pays), [])
        return sorted(book, key=lambda o: (o.quality, o.sequence))

    def _apply_offer_create(self, tx: dict[str, Any]) -> list[dict[str, Any]]:
        account = tx["Account"]
        gets_spec, gets = decode_wire(tx["TakerGets"])
        pays_spec, pays = decode_wire(tx["TakerPays"])
        if gets <= 0 or pays <= 0 or gets_spec == pays_spec:
            raise _Rejected("temBAD_OFFER")

        expiration = tx.get("Expiration")
        if expiration is not None and int(expiration) <= to_ripple_time(datetime.now(timezone.utc)):
            raise _Rejected("tecEXPIRED")
        if self._available(account, gets_spec) <= 0:
            raise _Rejected("tecUNFUNDED_OFFER")

        nodes: list[dict[str, Any]] = []
        limit_rate = gets / pays  # most the creator gives per unit received
        want = pays
        give = gets

        # Resting offers on the opposite side give what the creator wants.
        for resting in self._sorted_book(pays_spec, gets_spec):
            if want <= 0 or give <= 0:
                break
            if resting.account == account or resting.quality > limit_rate:
                continue
            funded = min(resting.gets, self._available(resting.account, resting.gets_spec))
            if funded <= 0:
                continue
            received = min(want, funded, give / resting.quality)
            paid = received * resting.quality
            if received <= 0:
                continue

            self._move(resting.account, account, resting.gets_spec, received)
            self._move(account, resting.account, resting.pays_spec, paid)

            previous = {
                "TakerGets": _wire(resting.gets_spec, resting.gets),
                "TakerPays": _wire(resting.pays_spec, resting.pays),
            }
            resting.gets -= received
            resting.pays -= paid
            want -= received
            give -= paid

            if resting.gets <= 0:
                self._books[_book_key(resting.gets_spec, resting.pays_spec)].remove(resting)
                self._accounts[resting.account].owner_count -= 1
                nodes.append(
                    {
                        "DeletedNode": {
                            "LedgerEntryType": "Offer",
                            "FinalFields": resting.node_fields(Decimal(0), Decimal(0)),
                            "PreviousFields": previous,
                        }
                    }
                )
            else:
                nodes.append(
                    {
                        "ModifiedNode": {
                            "LedgerEntryType": "Offer",
                            "FinalFields": resting.node_fields(),
                            "PreviousFields": previous,
                        }
                    }
                )

        flags = int(tx.get("Flags", 0) or 0)
        if flags & TF_IMMEDIATE_OR_CANCEL or want <= 0 or give <= 0:
            return nodes

        offer = _Offer(
            account=account,
            sequence=int(tx["Sequence"]),
            gets_spec=gets_spec,
            gets=want * limit_rate,
            pays_spec=pays_spec,
            pays=want,
            flags=flags,
            expiration=int(expiration) if expiration is not None else None,
        )
        self._books.setdefault(_book_key(gets_spec, pays_spec), []).append(offer)
        self._accounts[account].owner_count += 1
        nodes.append(
            {
                "CreatedNode": {
                    "LedgerEntryType": "Offer",
                    "NewFields": offer.node_fields(),
                }
            }
        )
        return nodes

    def _apply_offer_cancel(self, tx: dict[str, Any]) -> list[dict[str, Any]]:
        account = tx["Account"]
        sequence = int(tx["OfferSequence"])
        for book in self._books.values():
            for offer in book:
                if offer.account == account and offer.sequence == sequence:
                    book.remove(offer)
                    self._accounts[account].owner_count -= 1
                    return [
                        {
                            "DeletedNode": {
                                "LedgerEntryType": "Offer",
                                "FinalFields": offer.node_fields(),
                            }
                        }
                    ]
        # Cancelling a missing offer is not an error on the ledger.
        return []
