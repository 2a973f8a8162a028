"""In-process SigningGateway.

``WalletDirectory`` maps platform wallet ids to ledger addresses and signers.
Key material never leaves the signer objects; the orchestration layer only
ever asks for a ``Signer`` and hands it to the ledger client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from rwa_core.common.errors import WalletNotActivatedError, WalletNotFoundError
from rwa_core.ledger.protocol import WalletInfo

if TYPE_CHECKING:
    from rwa_core.ledger.protocol import Signer

log = structlog.get_logger()


@dataclass
class _Registration:
    address: str
    signer: Signer
    activated: bool


class WalletDirectory:
    """Registered platform wallets.

    Example:
        ```python
        wallets = WalletDirectory()
        wallets.register("alice", MockSigner(address), activated=True)
        signer = await wallets.get_signer("alice")
        ```
    """

    def __init__(self) -> None:
        self._wallets: dict[str, _Registration] = {}

    def register(self, wallet_id: str, signer: Signer, *, activated: bool = True) -> WalletInfo:
        self._wallets[wallet_id] = _Registration(
            address=signer.address,
            signer=signer,
            activated=activated,
        )
        log.info(
            "Wallet registered",
            wallet_id=wallet_id,
            address=signer.address,
            activated=activated,
        )
        return WalletInfo(wallet_id=wallet_id, address=signer.address, activated=activated)

    def set_activated(self, wallet_id: str, activated: bool = True) -> None:
        self._lookup(wallet_id).activated = activated

    async def get_wallet(self, wallet_id: str) -> WalletInfo:
        registration = self._lookup(wallet_id)
        return WalletInfo(
            wallet_id=wallet_id,
            address=registration.address,
            activated=registration.activated,
        )

    async def get_signer(self, wallet_id: str) -> Signer:
        registration = self._lookup(wallet_id)
        if not registration.activated:
            raise WalletNotActivatedError(wallet_id)
        return registration.signer

    def _lookup(self, wallet_id: str) -> _Registration:
        registration = self._wallets.get(wallet_id)
        if registration is None:
            raise WalletNotFoundError(wallet_id)
        return registration

    def __len__(self) -> int:
        return len(self._wallets)
