"""Common domain types, errors and primitives for RWA-Core."""

from rwa_core.common.errors import (
    AlreadyRedeemedError,
    AlreadyTokenizedError,
    AssetNotFoundError,
    ConflictError,
    InsufficientFundsError,
    InsufficientTokensError,
    InvalidInputError,
    LedgerUnavailableError,
    NoLiquidityError,
    NotActivatedError,
    NotFoundError,
    OperationFailedError,
    OrderNotFoundError,
    OwnerNotActivatedError,
    RedemptionFailedError,
    RWAError,
    TokenizationFailedError,
    TransactionRejectedError,
    TransferFailedError,
    UnauthorizedError,
    WalletNotActivatedError,
    WalletNotFoundError,
    classify_result,
)
from rwa_core.common.locks import KeyedLock
from rwa_core.common.types import (
    NATIVE_CURRENCY,
    Amount,
    CurrencySpec,
    DomainModel,
    IssuedAmount,
    LedgerAddress,
    NativeAmount,
    WalletId,
    is_valid_address,
    parse_amount,
    parse_currency,
    to_decimal,
    utc_now,
    validate_address,
    validate_currency_code,
    validate_model,
)

__all__ = [
    # Types
    "Amount",
    "CurrencySpec",
    "DomainModel",
    "IssuedAmount",
    "LedgerAddress",
    "NATIVE_CURRENCY",
    "NativeAmount",
    "WalletId",
    "is_valid_address",
    "parse_amount",
    "parse_currency",
    "to_decimal",
    "utc_now",
    "validate_address",
    "validate_currency_code",
    "validate_model",
    # Locks
    "KeyedLock",
    # Errors
    "RWAError",
    "InvalidInputError",
    "NotFoundError",
    "AssetNotFoundError",
    "WalletNotFoundError",
    "OrderNotFoundError",
    "ConflictError",
    "AlreadyTokenizedError",
    "AlreadyRedeemedError",
    "NotActivatedError",
    "OwnerNotActivatedError",
    "WalletNotActivatedError",
    "UnauthorizedError",
    "InsufficientFundsError",
    "InsufficientTokensError",
    "NoLiquidityError",
    "LedgerUnavailableError",
    "TransactionRejectedError",
    "OperationFailedError",
    "TokenizationFailedError",
    "TransferFailedError",
    "RedemptionFailedError",
    "classify_result",
]
