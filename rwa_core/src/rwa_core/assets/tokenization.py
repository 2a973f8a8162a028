"""Tokenization: turn a pending asset into an issued-currency supply.

Two ledger transactions, both signed by the asset owner (self-issuance: the
owner is issuer and first holder):

1. TrustSet for ``currency/owner`` with limit = total supply
2. Payment of the full supply from the owner to itself

An issuer never reuses a currency code across assets: a derived code that
is taken moves on to a numbered variant (``SUN`` -> ``SU1``), a requested one
is a conflict.

The asset only becomes TOKENIZED after both are validated. A retry after a
failed payment is safe; re-sending the same TrustSet changes nothing.
"""

from __future__ import annotations

import re
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING, Any, Final

import structlog

from rwa_core.common.errors import (
    AlreadyTokenizedError,
    ConflictError,
    InvalidInputError,
    OwnerNotActivatedError,
    RWAError,
    TokenizationFailedError,
    WalletNotActivatedError,
    WalletNotFoundError,
)
from rwa_core.common.locks import KeyedLock
from rwa_core.common.types import NATIVE_CURRENCY, IssuedAmount, utc_now, validate_model
from rwa_core.assets.models import (
    AssetStatus,
    TokenizationParams,
    TokenizationRecord,
    TokenizationResult,
)
from rwa_core.ledger.codec import amount_to_wire

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rwa_core.assets.models import Asset
    from rwa_core.assets.registry import AssetRegistry
    from rwa_core.ledger.client import LedgerClient
    from rwa_core.ledger.protocol import SigningGateway

log = structlog.get_logger()

DEFAULT_UNITS_PER_TOKEN: Final[Decimal] = Decimal(100)
_CODE_PADDING: Final[str] = "123"
_NON_ALNUM: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9]")


def derive_currency_code(name: str) -> str:
    """First three alphanumerics of the name, upper-cased and padded.

    ``"Downtown Office"`` -> ``"DOW"``, ``"A1"`` -> ``"A11"``. A result equal
    to the native currency code gets its last character replaced by a digit.
    """
    clean = _NON_ALNUM.sub("", name).upper()[:3]
    code = (clean + _CODE_PADDING)[:3]
    if code == NATIVE_CURRENCY:
        code = code[:2] + _CODE_PADDING[0]
    return code


def currency_code_candidates(name: str) -> Iterator[str]:
    """Derived code first, then numbered variants.

    ``"Sunset"`` -> ``SUN``, ``SU1`` .. ``SU9``, ``S10`` .. ``S99``.
    """
    base = derive_currency_code(name)
    yield base
    for digit in range(1, 10):
        code = f"{base[:2]}{digit}"
        if code not in (base, NATIVE_CURRENCY):
            yield code
    for number in range(10, 100):
        code = f"{base[:1]}{number}"
        if code != base:
            yield code


def derive_total_supply(value: Decimal, units_per_token: Decimal = DEFAULT_UNITS_PER_TOKEN) -> Decimal:
    """One token per ``units_per_token`` of asset value, rounded down."""
    return (value / units_per_token).to_integral_value(rounding=ROUND_FLOOR)


class TokenizationEngine:
    """Issues the currency that represents an asset.

    Attributes:
        issuer_locks: Serialize currency selection and issuance per issuer,
            so two assets of one owner never claim the same code.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        wallets: SigningGateway,
        ledger: LedgerClient,
        units_per_token: Decimal | int | str = DEFAULT_UNITS_PER_TOKEN,
    ) -> None:
        self.registry = registry
        self.wallets = wallets
        self.ledger = ledger
        self.units_per_token = Decimal(str(units_per_token))
        if self.units_per_token <= 0:
            msg = f"units_per_token must be positive, got {units_per_token}"
            raise ValueError(msg)
        self.issuer_locks = KeyedLock("issuer")

    def _select_currency_code(self, asset: Asset, issuer: str, requested: str | None) -> str:
        """First code not yet issued by ``issuer`` for another asset.

        Raises:
            ConflictError: A requested code is taken, or every variant is.
        """
        if requested is not None:
            record = self.registry.load_record(requested, issuer)
            if record is not None and record.asset_id != asset.id:
                raise ConflictError(
                    f"Currency {requested} is already issued by {issuer} "
                    f"for asset {record.asset_id}"
                )
            return requested

        for code in currency_code_candidates(asset.name):
            record = self.registry.load_record(code, issuer)
            if record is None or record.asset_id == asset.id:
                return code
            log.debug("Currency code taken", code=code, issuer=issuer, asset_id=record.asset_id)
        raise ConflictError(f"No free currency code for asset {asset.id} and issuer {issuer}")

    async def tokenize(
        self,
        asset_id: str,
        params: TokenizationParams | dict[str, Any] | None = None,
    ) -> TokenizationResult:
        """Tokenize a pending asset.

        Raises:
            AssetNotFoundError: Unknown asset.
            AlreadyTokenizedError: Asset is not PENDING.
            ConflictError: The requested currency code is already issued by
                the owner for another asset.
            InvalidInputError: Bad currency code or a derived supply of zero.
            OwnerNotActivatedError: Owner wallet cannot sign.
            TokenizationFailedError: A ledger step failed (wraps the cause).
        """
        params = validate_model(TokenizationParams, params or {})

        async with self.registry.asset_locks.hold(asset_id):
            asset = self.registry.get(asset_id)
            if asset.status != AssetStatus.PENDING:
                raise AlreadyTokenizedError(asset_id, asset.status.value)

            total_supply = params.total_supply or derive_total_supply(
                asset.value, self.units_per_token
            )
            if total_supply <= 0:
                raise InvalidInputError(
                    f"Asset value {asset.value} is too small to issue any tokens "
                    f"({self.units_per_token} per token)"
                )

            try:
                signer = await self.wallets.get_signer(asset.owner_wallet_id)
            except (WalletNotFoundError, WalletNotActivatedError) as exc:
                raise OwnerNotActivatedError(asset.owner_wallet_id) from exc
            issuer = signer.address

            async with self.issuer_locks.hold(issuer):
                currency_code = self._select_currency_code(asset, issuer, params.currency_code)
                supply = amount_to_wire(
                    IssuedAmount(currency=currency_code, issuer=issuer, value=total_supply)
                )
                log.info(
                    "Tokenizing asset",
                    asset_id=asset_id,
                    currency=currency_code,
                    total_supply=str(total_supply),
                    issuer=issuer,
                )

                try:
                    trust = await self.ledger.submit(
                        {"TransactionType": "TrustSet", "Account": issuer, "LimitAmount": supply},
                        signer,
                    )
                    issue = await self.ledger.submit(
                        {
                            "TransactionType": "Payment",
                            "Account": issuer,
                            "Destination": issuer,
                            "Amount": supply,
                        },
                        signer,
                    )
                except RWAError as exc:
                    log.error(
                        "Tokenization failed",
                        asset_id=asset_id,
                        error_code=exc.code,
                        result_code=exc.result_code,
                    )
                    raise TokenizationFailedError(exc) from exc

                now = utc_now()
                record = TokenizationRecord(
                    asset_id=asset_id,
                    currency_code=currency_code,
                    total_supply=total_supply,
                    available_supply=total_supply,
                    issuer_address=issuer,
                    transaction_hash=issue.tx_hash,
                    trust_set_hash=trust.tx_hash,
                    ledger_index=issue.ledger_index,
                    created_at=now,
                )
                asset = self.registry.transition(
                    asset,
                    AssetStatus.TOKENIZED,
                    tokenization=record,
                    tokenized_at=now,
                )

        return TokenizationResult(
            asset_id=asset.id,
            currency_code=currency_code,
            total_supply=total_supply,
            issuer_address=issuer,
            transaction_hash=issue.tx_hash,
            trust_set_hash=trust.tx_hash,
            ledger_index=issue.ledger_index,
            status=asset.status,
        )
