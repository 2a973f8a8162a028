"""Asset endpoints.

Static paths (``/asset/stats``, ``/asset/balance/...``, ``/asset/wallet/...``)
are declared before ``/asset/{asset_id}`` so they are never captured by it.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from rwa_core.api.dependencies import services_of
from rwa_core.api.envelope import success
from rwa_core.api.schemas import RedeemBody, TransferBody, TrustLineBody
from rwa_core.assets.models import AssetCreateRequest, TokenizationParams

router = APIRouter(prefix="/asset", tags=["asset"])


@router.post("/create")
async def create_asset(request: Request, body: AssetCreateRequest) -> JSONResponse:
    asset = await services_of(request).registry.register(body)
    return success(asset, "Asset registered", status_code=201)


@router.post("/transfer")
async def transfer_tokens(request: Request, body: TransferBody) -> JSONResponse:
    result = await services_of(request).transfers.transfer(
        body.from_wallet_id,
        body.to_address,
        body.currency_code,
        body.issuer_address,
        body.amount,
    )
    return success(result, "Tokens transferred")


@router.post("/trustline")
async def establish_trust_line(request: Request, body: TrustLineBody) -> JSONResponse:
    result = await services_of(request).transfers.establish_trust_line(
        body.wallet_id,
        body.currency_code,
        body.issuer_address,
        body.limit,
    )
    return success(result, "Trust line established")


@router.get("/stats")
async def asset_stats(request: Request) -> JSONResponse:
    return success(services_of(request).registry.stats(), "Asset statistics")


@router.get("/balance/{wallet_id}/{currency_code}/{issuer_address}")
async def token_balance(
    request: Request,
    wallet_id: str,
    currency_code: str,
    issuer_address: str,
) -> JSONResponse:
    balance = await services_of(request).transfers.get_balance(
        wallet_id, currency_code, issuer_address
    )
    return success(balance, "Token balance")


@router.get("/wallet/{wallet_id}")
async def wallet_assets(request: Request, wallet_id: str) -> JSONResponse:
    assets = services_of(request).registry.list_by_owner(wallet_id)
    return success({"wallet_id": wallet_id, "assets": assets, "total": len(assets)}, "Wallet assets")


@router.get("/{asset_id}")
async def get_asset(request: Request, asset_id: str) -> JSONResponse:
    return success(services_of(request).registry.get(asset_id), "Asset details")


@router.post("/{asset_id}/tokenize")
async def tokenize_asset(
    request: Request,
    asset_id: str,
    params: TokenizationParams | None = Body(default=None),
) -> JSONResponse:
    result = await services_of(request).tokenization.tokenize(asset_id, params)
    return success(result, "Asset tokenized")


@router.post("/{asset_id}/redeem")
async def redeem_asset(request: Request, asset_id: str, body: RedeemBody) -> JSONResponse:
    result = await services_of(request).redemption.redeem(
        asset_id, body.wallet_id, body.token_amount
    )
    return success(result, "Redemption processed")
