"""Tests for common primitives.

Tests cover:
- Amount parsing from client payload shapes
- Address and currency code validation
- Result code classification and wrapped operation errors
- Wire codec helpers
- KeyedLock mutual exclusion
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from rwa_core.assets.models import AssetCreateRequest
from rwa_core.common import (
    InsufficientFundsError,
    InvalidInputError,
    IssuedAmount,
    KeyedLock,
    LedgerUnavailableError,
    NativeAmount,
    NoLiquidityError,
    OperationFailedError,
    TokenizationFailedError,
    TransactionRejectedError,
    UnauthorizedError,
    classify_result,
    is_valid_address,
    parse_amount,
    parse_currency,
    to_decimal,
    validate_currency_code,
    validate_model,
)
from rwa_core.ledger import generate_address
from rwa_core.ledger.codec import (
    amount_summary,
    amount_to_wire,
    format_decimal,
    from_ripple_time,
    native_to_drops,
    to_ripple_time,
)

ISSUER = generate_address()


# ==============================================================================
# Amount Parsing Tests
# ==============================================================================
class TestParseAmount:
    """Tests for parse_amount."""

    def test_bare_number_is_native(self) -> None:
        """Strings and numbers are native amounts."""
        assert parse_amount("10.5") == NativeAmount(value=Decimal("10.5"))
        assert parse_amount(3) == NativeAmount(value=Decimal(3))

    def test_native_object(self) -> None:
        """An object with the native code is a native amount."""
        amount = parse_amount({"currency": "xrp", "value": "7"})
        assert isinstance(amount, NativeAmount)
        assert amount.value == Decimal(7)

    def test_issued_object(self) -> None:
        """Objects with currency and issuer are issued amounts."""
        amount = parse_amount({"currency": "abc", "issuer": ISSUER, "value": "100"})
        assert isinstance(amount, IssuedAmount)
        assert amount.currency == "ABC"
        assert amount.issuer == ISSUER
        assert amount.value == Decimal(100)

    @pytest.mark.parametrize(
        "raw",
        [
            "0",
            "-1",
            True,
            [1],
            None,
            {"currency": "ABC", "value": "1"},
            {"currency": "ABC", "issuer": ISSUER},
            {"currency": "ABC", "issuer": "not-an-address", "value": "1"},
            {"currency": "XRP", "issuer": ISSUER, "value": "1"},
            {"currency": "ABCD", "issuer": ISSUER, "value": "1"},
        ],
    )
    def test_invalid_shapes(self, raw: object) -> None:
        """Anything else is rejected as invalid input."""
        with pytest.raises(InvalidInputError):
            parse_amount(raw)

    def test_parse_currency(self) -> None:
        """Book sides accept the native code or a currency object."""
        assert parse_currency("XRP").is_native
        spec = parse_currency({"currency": "ABC", "issuer": ISSUER})
        assert spec.label() == f"ABC.{ISSUER}"
        with pytest.raises(InvalidInputError):
            parse_currency({"currency": "ABC"})


# ==============================================================================
# Validation Tests
# ==============================================================================
class TestValidation:
    """Tests for address, currency and numeric validation."""

    def test_currency_code_normalized(self) -> None:
        """Codes are stripped and upper-cased."""
        assert validate_currency_code(" abc ") == "ABC"

    @pytest.mark.parametrize("code", ["XRP", "xrp", "AB", "ABCD", "A-C", 123])
    def test_currency_code_rejected(self, code: object) -> None:
        """Wrong length, symbols, non-strings and the native code are rejected."""
        with pytest.raises(InvalidInputError):
            validate_currency_code(code)

    def test_address_format(self) -> None:
        """Generated addresses pass; malformed ones do not."""
        assert is_valid_address(generate_address())
        assert not is_valid_address("xyz")
        assert not is_valid_address("r" + "0" * 30)
        assert not is_valid_address(None)

    def test_to_decimal(self) -> None:
        """Floats go through their repr; non-finite values are rejected."""
        assert to_decimal(0.1) == Decimal("0.1")
        for bad in ("nan", "abc", "inf", False):
            with pytest.raises(InvalidInputError):
                to_decimal(bad)

    def test_validate_model_reports_fields(self) -> None:
        """Model validation failures name the offending field."""
        with pytest.raises(InvalidInputError, match="value"):
            validate_model(
                AssetCreateRequest,
                {
                    "name": "Office",
                    "asset_type": "real_estate",
                    "value": "-5",
                    "owner_wallet_id": "owner",
                },
            )


# ==============================================================================
# Error Classification Tests
# ==============================================================================
class TestClassifyResult:
    """Tests for ledger result code classification."""

    @pytest.mark.parametrize(
        ("result_code", "error_cls", "http_status"),
        [
            ("tecUNFUNDED_PAYMENT", InsufficientFundsError, 400),
            ("tecINSUF_RESERVE_LINE", InsufficientFundsError, 400),
            ("tecPATH_DRY", NoLiquidityError, 400),
            ("tecNO_PERMISSION", UnauthorizedError, 401),
            ("tefPAST_SEQ", TransactionRejectedError, 400),
            ("tecNO_LINE", TransactionRejectedError, 400),
        ],
    )
    def test_known_codes(
        self, result_code: str, error_cls: type, http_status: int
    ) -> None:
        """Table entries map to their error class."""
        error = classify_result(result_code, context="Payment")
        assert isinstance(error, error_cls)
        assert error.result_code == result_code
        assert error.http_status == http_status
        assert error.message.startswith("Payment: ")

    def test_unknown_code_preserved(self) -> None:
        """Unknown codes become OperationFailedError with the raw code."""
        error = classify_result("tecSOMETHING_NEW")
        assert isinstance(error, OperationFailedError)
        assert error.result_code == "tecSOMETHING_NEW"
        assert "tecSOMETHING_NEW" in error.message

    def test_wrapped_error_follows_cause(self) -> None:
        """Operation wrappers report the classification of their cause."""
        wrapped = TokenizationFailedError(LedgerUnavailableError("timed out"))
        assert wrapped.code == "LEDGER_UNAVAILABLE"
        assert wrapped.http_status == 503
        assert wrapped.retryable
        assert "tokenize asset" in wrapped.message

    def test_transaction_hash_carried(self) -> None:
        """The rejected transaction's hash survives classification and wrapping."""
        error = classify_result("tecKILLED", context="OfferCreate", transaction_hash="ABC123")
        assert isinstance(error, NoLiquidityError)
        assert error.transaction_hash == "ABC123"
        assert TokenizationFailedError(error).transaction_hash == "ABC123"
        assert classify_result("tecSOMETHING_NEW", transaction_hash="H").transaction_hash == "H"


# ==============================================================================
# Codec Tests
# ==============================================================================
class TestCodec:
    """Tests for wire-format helpers."""

    def test_native_drops(self) -> None:
        """Native amounts are encoded as integer drops."""
        assert native_to_drops(Decimal("1.5")) == "1500000"
        assert amount_to_wire(NativeAmount(value=Decimal(25))) == "25000000"
        with pytest.raises(InvalidInputError):
            native_to_drops(Decimal("0.0000001"))

    def test_format_decimal(self) -> None:
        """No exponent, no trailing zeros."""
        assert format_decimal(Decimal("1E+3")) == "1000"
        assert format_decimal(Decimal("2.500")) == "2.5"
        assert format_decimal(Decimal("-0")) == "0"

    def test_amount_summary(self) -> None:
        """Summaries show native amounts in whole units."""
        assert amount_summary("2500000") == {"currency": "XRP", "value": "2.5"}
        issued = {"currency": "ABC", "issuer": ISSUER, "value": "10"}
        assert amount_summary(issued) == issued

    def test_ripple_time(self) -> None:
        """Ledger time counts from 2000-01-01 UTC."""
        epoch = datetime(2000, 1, 1, tzinfo=timezone.utc)
        assert to_ripple_time(epoch) == 0
        assert from_ripple_time(86_400) == datetime(2000, 1, 2, tzinfo=timezone.utc)


# ==============================================================================
# Keyed Lock Tests
# ==============================================================================
class TestKeyedLock:
    """Tests for KeyedLock."""

    @pytest.mark.asyncio
    async def test_same_key_serialized(self) -> None:
        """Holders of one key never overlap; entries are dropped afterwards."""
        locks = KeyedLock("test")
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("asset-1"):
                events.append(f"{name}:enter")
                await asyncio.sleep(0.01)
                events.append(f"{name}:exit")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a:enter", "a:exit", "b:enter", "b:exit"],
            ["b:enter", "b:exit", "a:enter", "a:exit"],
        )
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_independent(self) -> None:
        """Different keys do not block each other."""
        locks = KeyedLock("test")
        async with locks.hold("a"):
            async with locks.hold("b"):
                assert locks.is_locked("a")
                assert locks.is_locked("b")
        assert not locks.is_locked("a")
