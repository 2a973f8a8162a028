"""Wire-format codec for ledger amounts.

The ledger encodes native amounts as integer strings of drops and issued
amounts as ``{"currency", "issuer", "value"}`` objects. Everything inside
the orchestration layer uses ``NativeAmount`` / ``IssuedAmount`` instead.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Final

from rwa_core.common.errors import InvalidInputError
from rwa_core.common.types import (
    DROPS_PER_NATIVE,
    NATIVE_CURRENCY,
    CurrencySpec,
    IssuedAmount,
    NativeAmount,
)

RIPPLE_EPOCH_OFFSET: Final[int] = 946_684_800  # 2000-01-01T00:00:00Z
TF_IMMEDIATE_OR_CANCEL: Final[int] = 0x00040000  # OfferCreate flag


def to_ripple_time(moment: datetime) -> int:
    """Seconds since the ledger epoch."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp()) - RIPPLE_EPOCH_OFFSET


def from_ripple_time(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds + RIPPLE_EPOCH_OFFSET, tz=timezone.utc)


def format_decimal(value: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros."""
    normalized = value.normalize()
    text = format(normalized, "f")
    return text if text != "-0" else "0"


def native_to_drops(value: Decimal) -> str:
    drops = value * DROPS_PER_NATIVE
    if drops != drops.to_integral_value():
        raise InvalidInputError(f"Native amount {value} has more than 6 decimal places")
    return str(int(drops))


def drops_to_native(drops: str | int) -> Decimal:
    return Decimal(str(drops)) / DROPS_PER_NATIVE


def amount_to_wire(amount: NativeAmount | IssuedAmount) -> str | dict[str, str]:
    if isinstance(amount, NativeAmount):
        return native_to_drops(amount.value)
    return {
        "currency": amount.currency,
        "issuer": amount.issuer,
        "value": format_decimal(amount.value),
    }


def decode_wire(raw: Any) -> tuple[CurrencySpec, Decimal]:
    """Split a wire amount into currency and (possibly zero) quantity."""
    if isinstance(raw, (str, int)):
        return CurrencySpec(currency=NATIVE_CURRENCY), drops_to_native(raw)
    if isinstance(raw, dict) and "currency" in raw and "value" in raw:
        return (
            CurrencySpec(currency=raw["currency"], issuer=raw.get("issuer")),
            Decimal(str(raw["value"])),
        )
    raise ValueError(f"Unrecognized wire amount: {raw!r}")


def amount_from_wire(raw: Any) -> NativeAmount | IssuedAmount:
    """Decode a strictly positive wire amount."""
    spec, value = decode_wire(raw)
    return build_amount(spec, value)


def build_amount(spec: CurrencySpec, value: Decimal) -> NativeAmount | IssuedAmount:
    if spec.is_native:
        return NativeAmount(value=value)
    return IssuedAmount(currency=spec.currency, issuer=spec.issuer, value=value)


def currency_to_wire(spec: CurrencySpec) -> dict[str, str]:
    if spec.is_native:
        return {"currency": NATIVE_CURRENCY}
    return {"currency": spec.currency, "issuer": str(spec.issuer)}


def amount_summary(raw: Any) -> dict[str, str]:
    """Client-facing view of a wire amount (native shown in whole units)."""
    spec, value = decode_wire(raw)
    summary = {"currency": spec.currency, "value": format_decimal(value)}
    if spec.issuer:
        summary["issuer"] = spec.issuer
    return summary
