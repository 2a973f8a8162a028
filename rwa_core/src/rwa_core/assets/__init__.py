"""Asset registry, tokenization, transfers and redemption."""

from rwa_core.assets.models import (
    Asset,
    AssetCreateRequest,
    AssetStats,
    AssetStatus,
    AssetSummary,
    AssetType,
    RedemptionResult,
    TokenBalance,
    TokenizationParams,
    TokenizationRecord,
    TokenizationResult,
    TransferResult,
    TrustLineResult,
    VerificationStatus,
)
from rwa_core.assets.redemption import RedemptionEngine
from rwa_core.assets.registry import AssetRegistry
from rwa_core.assets.tokenization import (
    TokenizationEngine,
    currency_code_candidates,
    derive_currency_code,
    derive_total_supply,
)
from rwa_core.assets.transfer import TransferCoordinator

__all__ = [
    "Asset",
    "AssetCreateRequest",
    "AssetRegistry",
    "AssetStats",
    "AssetStatus",
    "AssetSummary",
    "AssetType",
    "RedemptionEngine",
    "RedemptionResult",
    "TokenBalance",
    "TokenizationEngine",
    "TokenizationParams",
    "TokenizationRecord",
    "TokenizationResult",
    "TransferCoordinator",
    "TransferResult",
    "TrustLineResult",
    "VerificationStatus",
    "currency_code_candidates",
    "derive_currency_code",
    "derive_total_supply",
]
