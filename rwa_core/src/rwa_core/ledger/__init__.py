"""Ledger connectivity: protocols, resilient client, simulator and adapters."""

from rwa_core.ledger.client import CircuitBreaker, CircuitState, LedgerClient
from rwa_core.ledger.mock import MockLedger, MockSigner, generate_address
from rwa_core.ledger.protocol import (
    AccountInfo,
    LedgerConnectionError,
    LedgerGateway,
    Signer,
    SigningGateway,
    SubmissionResult,
    TrustLine,
    WalletInfo,
)
from rwa_core.ledger.wallets import WalletDirectory
from rwa_core.ledger.xrpl import XRPLGateway, XRPLSigner

__all__ = [
    "AccountInfo",
    "CircuitBreaker",
    "CircuitState",
    "LedgerClient",
    "LedgerConnectionError",
    "LedgerGateway",
    "MockLedger",
    "MockSigner",
    "Signer",
    "SigningGateway",
    "SubmissionResult",
    "TrustLine",
    "WalletDirectory",
    "WalletInfo",
    "XRPLGateway",
    "XRPLSigner",
    "generate_address",
]
