"""Domain primitives and value objects for RWA-Core.

This module defines the immutable core types shared by the asset and DEX
layers:
- Ledger addresses and currency codes with their format rules
- The ``Amount`` tagged union (native currency vs. issued currency)
- The boundary parser that turns client payload shapes into ``Amount``

Architectural Decision:
    Client payloads describe amounts with two duck-typed shapes (a bare
    number for the native currency, an object for issued currencies). They
    are normalized exactly once, here, so nothing downstream has to inspect
    raw shapes again.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Final, Literal, NewType, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from rwa_core.common.errors import InvalidInputError

# ==============================================================================
# Domain Primitives
# ==============================================================================
WalletId = NewType("WalletId", str)
"""Platform-side wallet identifier (resolved to an address by the signing gateway)."""

LedgerAddress = NewType("LedgerAddress", str)
"""Classic ledger account address (base58, starts with ``r``)."""

NATIVE_CURRENCY: Final[str] = "XRP"
DROPS_PER_NATIVE: Final[Decimal] = Decimal(1_000_000)

ADDRESS_PATTERN: Final[re.Pattern[str]] = re.compile(r"^r[1-9A-HJ-NP-Za-km-z]{24,34}$")
CURRENCY_CODE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Z0-9]{3}$")


def is_valid_address(address: object) -> bool:
    """Check the classic address format (no checksum verification)."""
    return isinstance(address, str) and bool(ADDRESS_PATTERN.match(address))


def validate_address(address: object, field_name: str = "address") -> str:
    """Return the address or raise InvalidInputError."""
    if not is_valid_address(address):
        raise InvalidInputError(f"Invalid ledger address for {field_name}: {address!r}")
    return str(address)


def validate_currency_code(code: object) -> str:
    """Normalize and validate a 3-character issued currency code.

    Raises:
        InvalidInputError: If the code is malformed or the reserved native code.
    """
    if not isinstance(code, str):
        raise InvalidInputError("Currency code must be a string")
    normalized = code.strip().upper()
    if not CURRENCY_CODE_PATTERN.match(normalized):
        raise InvalidInputError(
            f"Currency code must be exactly 3 alphanumeric characters, got {code!r}"
        )
    if normalized == NATIVE_CURRENCY:
        raise InvalidInputError(f"{NATIVE_CURRENCY} is reserved for the native currency")
    return normalized


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Coerce numeric input (str, int, float, Decimal) to Decimal."""
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} must be numeric")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidInputError(f"{field_name} must be numeric, got {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise InvalidInputError(f"{field_name} must be numeric, got {type(value).__name__}")
    if not result.is_finite():
        raise InvalidInputError(f"{field_name} must be finite")
    return result


# ==============================================================================
# Enumerations
# ==============================================================================
class AmountKind(str, Enum):
    """Discriminator for the Amount union."""

    NATIVE = "native"
    ISSUED = "issued"


# ==============================================================================
# Base Domain Model
# ==============================================================================
class DomainModel(BaseModel):
    """Base model for immutable value objects.

    - frozen=True: value objects never change after construction
    - extra="forbid": catch typos and schema drift early
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ==============================================================================
# Amount (tagged union)
# ==============================================================================
class NativeAmount(DomainModel):
    """Amount of the ledger's native currency, in whole units."""

    kind: Literal["native"] = "native"
    value: Decimal = Field(..., gt=0)

    @property
    def currency(self) -> str:
        return NATIVE_CURRENCY

    @property
    def issuer(self) -> None:
        return None

    def with_value(self, value: Decimal) -> NativeAmount:
        return NativeAmount(value=value)

    def same_asset(self, other: Amount) -> bool:
        return isinstance(other, NativeAmount)


class IssuedAmount(DomainModel):
    """Amount of an issued currency, tied to its issuer."""

    kind: Literal["issued"] = "issued"
    currency: str
    issuer: str
    value: Decimal = Field(..., gt=0)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are upper-case 3-char codes, never the native code."""
        try:
            return validate_currency_code(v)
        except InvalidInputError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("issuer")
    @classmethod
    def check_issuer(cls, v: str) -> str:
        if not is_valid_address(v):
            msg = f"Invalid issuer address: {v!r}"
            raise ValueError(msg)
        return v

    def with_value(self, value: Decimal) -> IssuedAmount:
        return IssuedAmount(currency=self.currency, issuer=self.issuer, value=value)

    def same_asset(self, other: Amount) -> bool:
        return (
            isinstance(other, IssuedAmount)
            and other.currency == self.currency
            and other.issuer == self.issuer
        )


Amount = Annotated[Union[NativeAmount, IssuedAmount], Field(discriminator="kind")]


class CurrencySpec(DomainModel):
    """A currency without a quantity (one side of an order book)."""

    currency: str
    issuer: str | None = None

    @property
    def is_native(self) -> bool:
        return self.currency == NATIVE_CURRENCY and self.issuer is None

    def label(self) -> str:
        return self.currency if self.is_native else f"{self.currency}.{self.issuer}"


def currency_of(amount: NativeAmount | IssuedAmount) -> CurrencySpec:
    """Strip the quantity from an amount."""
    if isinstance(amount, NativeAmount):
        return CurrencySpec(currency=NATIVE_CURRENCY)
    return CurrencySpec(currency=amount.currency, issuer=amount.issuer)


def parse_amount(raw: Any, field_name: str = "amount") -> NativeAmount | IssuedAmount:
    """Parse a client-supplied amount into the Amount union.

    Accepted shapes:
        - ``"10.5"`` / ``10.5`` / ``Decimal``: native amount
        - ``{"currency": "XRP", "value": "10"}``: native amount
        - ``{"currency": "ABC", "issuer": "r...", "value": "10"}``: issued amount
        - An already-parsed NativeAmount / IssuedAmount

    Raises:
        InvalidInputError: On any other shape, non-positive value, or bad issuer.
    """
    if isinstance(raw, (NativeAmount, IssuedAmount)):
        return raw

    if isinstance(raw, (str, int, float, Decimal)) and not isinstance(raw, bool):
        value = to_decimal(raw, field_name)
        if value <= 0:
            raise InvalidInputError(f"{field_name} must be positive")
        return NativeAmount(value=value)

    if isinstance(raw, dict):
        if "value" not in raw:
            raise InvalidInputError(f"{field_name}.value is required")
        value = to_decimal(raw["value"], f"{field_name}.value")
        if value <= 0:
            raise InvalidInputError(f"{field_name}.value must be positive")

        currency = raw.get("currency")
        issuer = raw.get("issuer")
        if isinstance(currency, str) and currency.strip().upper() == NATIVE_CURRENCY:
            if issuer:
                raise InvalidInputError(f"{field_name}: native currency has no issuer")
            return NativeAmount(value=value)

        if not currency:
            raise InvalidInputError(f"{field_name}.currency is required")
        if not issuer:
            raise InvalidInputError(f"{field_name}.issuer is required for issued currencies")
        return IssuedAmount(
            currency=validate_currency_code(currency),
            issuer=validate_address(issuer, f"{field_name}.issuer"),
            value=value,
        )

    raise InvalidInputError(f"Invalid {field_name} format")


def parse_currency(raw: Any, field_name: str = "currency") -> CurrencySpec:
    """Parse one side of an order book (``"XRP"`` or ``{currency, issuer}``)."""
    if isinstance(raw, CurrencySpec):
        return raw
    if isinstance(raw, str) and raw.strip().upper() == NATIVE_CURRENCY:
        return CurrencySpec(currency=NATIVE_CURRENCY)
    if isinstance(raw, dict):
        currency = raw.get("currency")
        issuer = raw.get("issuer")
        if isinstance(currency, str) and currency.strip().upper() == NATIVE_CURRENCY and not issuer:
            return CurrencySpec(currency=NATIVE_CURRENCY)
        if not issuer:
            raise InvalidInputError(f"{field_name}.issuer is required for issued currencies")
        return CurrencySpec(
            currency=validate_currency_code(currency),
            issuer=validate_address(issuer, f"{field_name}.issuer"),
        )
    raise InvalidInputError(f"Invalid {field_name} format")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


M = TypeVar("M", bound=BaseModel)


def validate_model(model_cls: type[M], data: Any) -> M:
    """Validate client data into a model, reporting failures as InvalidInputError."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidInputError(f"Invalid {model_cls.__name__}: {details}") from exc
