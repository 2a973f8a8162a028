"""Error taxonomy for RWA-Core.

Every failure the orchestration layer reports is one of a closed set of
exception classes. Each class carries a stable ``code`` and the HTTP status
the API layer maps it to, so callers dispatch on type rather than on message
text.

Ledger-side rejections arrive as engine result codes (``tecUNFUNDED_PAYMENT``,
``tefPAST_SEQ``, ...). ``classify_result`` translates them through an
explicit table; anything not in the table becomes ``OperationFailedError``
with the raw code preserved.
"""

from __future__ import annotations

from typing import Final


# ==============================================================================
# Base
# ==============================================================================
class RWAError(Exception):
    """Base exception for all RWA-Core errors."""

    code: str = "INTERNAL_ERROR"
    http_status: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        result_code: str | None = None,
        transaction_hash: str | None = None,
    ) -> None:
        self.message = message
        self.result_code = result_code
        self.transaction_hash = transaction_hash
        super().__init__(message)


# ==============================================================================
# Input / lookup / state errors (raised before any network call)
# ==============================================================================
class InvalidInputError(RWAError):
    """Malformed input."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(RWAError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class AssetNotFoundError(NotFoundError):
    """Raised when asset not found in store."""

    def __init__(self, asset_id: str, detail: str = "Asset not found") -> None:
        self.asset_id = asset_id
        super().__init__(f"{detail}: {asset_id}")


class WalletNotFoundError(NotFoundError):
    """Raised when the signing gateway does not know a wallet."""

    def __init__(self, wallet_id: str) -> None:
        self.wallet_id = wallet_id
        super().__init__(f"Wallet not found: {wallet_id}")


class OrderNotFoundError(NotFoundError):
    """Raised when no active order matches a cancellation request."""

    def __init__(self, wallet_id: str, offer_sequence: int) -> None:
        self.wallet_id = wallet_id
        self.offer_sequence = offer_sequence
        super().__init__(
            f"No active order with offer sequence {offer_sequence} for wallet {wallet_id}"
        )


class ConflictError(RWAError):
    """Operation conflicts with the current entity state."""

    code = "CONFLICT"
    http_status = 409


class AlreadyTokenizedError(ConflictError):
    """Raised when tokenize is attempted on a non-pending asset."""

    def __init__(self, asset_id: str, status: str) -> None:
        self.asset_id = asset_id
        self.status = status
        super().__init__(f"Asset {asset_id} is already {status}")


class AlreadyRedeemedError(ConflictError):
    """Raised when an asset has already reached the redeemed state."""

    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} is already redeemed")


class NotActivatedError(RWAError):
    """Wallet lacks the on-ledger state the operation needs."""

    code = "NOT_ACTIVATED"
    http_status = 400


class OwnerNotActivatedError(NotActivatedError):
    """Raised when an asset owner's wallet has no ledger presence."""

    def __init__(self, wallet_id: str) -> None:
        self.wallet_id = wallet_id
        super().__init__(f"Owner wallet must be activated: {wallet_id}")


class WalletNotActivatedError(NotActivatedError):
    """Raised by the signing gateway for wallets without a funded account."""

    def __init__(self, wallet_id: str) -> None:
        self.wallet_id = wallet_id
        super().__init__(f"Wallet not activated: {wallet_id}")


class UnauthorizedError(RWAError):
    """Ledger refused the operation for lack of authorization."""

    code = "UNAUTHORIZED"
    http_status = 401


# ==============================================================================
# Ledger-reported errors
# ==============================================================================
class InsufficientFundsError(RWAError):
    """Ledger-reported shortfall of funds or reserve."""

    code = "INSUFFICIENT_FUNDS"
    http_status = 400


class InsufficientTokensError(RWAError):
    """Holder does not own enough tokens for the requested redemption."""

    code = "INSUFFICIENT_TOKENS"
    http_status = 400

    def __init__(self, required: object, available: object) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient token balance: required={required}, available={available}"
        )


class NoLiquidityError(RWAError):
    """No matching offers for the requested pair."""

    code = "NO_LIQUIDITY"
    http_status = 400


class LedgerUnavailableError(RWAError):
    """Connection failure or timeout talking to the ledger."""

    code = "LEDGER_UNAVAILABLE"
    http_status = 503
    retryable = True


class TransactionRejectedError(RWAError):
    """Deterministic ledger rejection. Never retried."""

    code = "TRANSACTION_REJECTED"
    http_status = 400


class OperationFailedError(RWAError):
    """Unrecognized failure; the raw ledger code is preserved."""

    code = "OPERATION_FAILED"
    http_status = 500


# ==============================================================================
# Operation wrappers
# ==============================================================================
class _WrappedOperationError(RWAError):
    """Operation-level failure that keeps the classified cause.

    ``code``, ``http_status`` and ``retryable`` follow the cause so the API
    still reports e.g. LEDGER_UNAVAILABLE/503 for a tokenization timeout.
    """

    operation: str = "operation"

    def __init__(self, cause: RWAError) -> None:
        self.cause = cause
        self.code = cause.code
        self.http_status = cause.http_status
        self.retryable = cause.retryable
        super().__init__(
            f"Failed to {self.operation}: {cause.message}",
            result_code=cause.result_code,
            transaction_hash=cause.transaction_hash,
        )


class TokenizationFailedError(_WrappedOperationError):
    operation = "tokenize asset"


class TransferFailedError(_WrappedOperationError):
    operation = "transfer tokens"


class RedemptionFailedError(_WrappedOperationError):
    operation = "redeem asset"


# ==============================================================================
# Result code classification
# ==============================================================================
SUCCESS_CODE: Final[str] = "tesSUCCESS"

_RESULT_CODE_TABLE: Final[dict[str, tuple[type[RWAError], str]]] = {
    # Funding / reserve shortfalls
    "tecUNFUNDED": (InsufficientFundsError, "Insufficient funds"),
    "tecUNFUNDED_PAYMENT": (InsufficientFundsError, "Insufficient funds for payment"),
    "tecUNFUNDED_OFFER": (InsufficientFundsError, "Offer is not funded"),
    "tecINSUF_RESERVE_LINE": (InsufficientFundsError, "Insufficient reserve for trust line"),
    "tecINSUF_RESERVE_OFFER": (InsufficientFundsError, "Insufficient reserve for offer"),
    "tecINSUFFICIENT_RESERVE": (InsufficientFundsError, "Insufficient reserve"),
    "tecNO_DST_INSUF_XRP": (
        InsufficientFundsError,
        "Destination account does not have enough native currency",
    ),
    "terINSUF_FEE_B": (InsufficientFundsError, "Insufficient balance to pay the fee"),
    # Liquidity
    "tecPATH_DRY": (NoLiquidityError, "No liquidity available for this trade"),
    "tecPATH_PARTIAL": (NoLiquidityError, "Only partial liquidity available"),
    "tecKILLED": (NoLiquidityError, "Offer could not be filled"),
    # Authorization
    "tecNO_AUTH": (UnauthorizedError, "Not authorized to perform this operation"),
    "tecNO_PERMISSION": (UnauthorizedError, "No permission to perform this action"),
    # Deterministic rejections
    "tecNO_LINE": (TransactionRejectedError, "Trust line does not exist"),
    "tecNO_LINE_INSUF_RESERVE": (TransactionRejectedError, "Trust line cannot be created"),
    "tecNO_DST": (TransactionRejectedError, "Destination account does not exist"),
    "tecNO_TARGET": (TransactionRejectedError, "Target account does not exist"),
    "tecNO_ENTRY": (TransactionRejectedError, "Ledger entry does not exist"),
    "tecEXPIRED": (TransactionRejectedError, "Expiration is in the past"),
    "tefPAST_SEQ": (TransactionRejectedError, "Sequence number already used"),
    "terPRE_SEQ": (TransactionRejectedError, "Sequence number is ahead of the account"),
    "tefMAX_LEDGER": (TransactionRejectedError, "Transaction expired before validation"),
    "temBAD_AMOUNT": (TransactionRejectedError, "Malformed amount"),
    "temBAD_CURRENCY": (TransactionRejectedError, "Malformed currency"),
    "temBAD_OFFER": (TransactionRejectedError, "Malformed offer"),
    "temBAD_ISSUER": (TransactionRejectedError, "Malformed issuer"),
    "temDST_IS_SRC": (TransactionRejectedError, "Destination equals source"),
    "temREDUNDANT": (TransactionRejectedError, "Transaction has no effect"),
    "temDISABLED": (TransactionRejectedError, "Feature disabled on this network"),
}


def classify_result(
    result_code: str,
    context: str | None = None,
    transaction_hash: str | None = None,
) -> RWAError:
    """Map a non-success ledger engine code onto the error taxonomy.

    Args:
        result_code: Engine result, e.g. ``tecUNFUNDED_PAYMENT``.
        context: Optional prefix for the message (transaction type).
        transaction_hash: Hash of the rejected transaction, when it reached
            the ledger.

    Returns:
        An exception instance (not raised) carrying ``result_code``.
    """
    entry = _RESULT_CODE_TABLE.get(result_code)
    prefix = f"{context}: " if context else ""
    if entry is None:
        return OperationFailedError(
            f"{prefix}Transaction failed with {result_code}",
            result_code=result_code,
            transaction_hash=transaction_hash,
        )
    error_cls, description = entry
    return error_cls(
        f"{prefix}{description} ({result_code})",
        result_code=result_code,
        transaction_hash=transaction_hash,
    )
