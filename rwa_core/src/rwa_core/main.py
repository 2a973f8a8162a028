"""RWA-Core Application Entrypoint.

This module bootstraps the HTTP service using Hydra for configuration
management. All runtime parameters are externalized to YAML files in conf/.

Usage:
    # Default config (mock ledger, in-memory store)
    python -m rwa_core.main

    # Real ledger and Redis
    python -m rwa_core.main ledger=xrpl store=redis env=prod

    # Override single values
    python -m rwa_core.main server.port=9000 ledger.submit_timeout=45
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import hydra
import structlog
from hydra.utils import instantiate
from omegaconf import OmegaConf

from rwa_core import __version__
from rwa_core.container import Services, build_services
from rwa_core.ledger.mock import MockLedger, MockSigner, generate_address
from rwa_core.ledger.wallets import WalletDirectory
from rwa_core.ledger.xrpl import XRPLSigner

if TYPE_CHECKING:
    from omegaconf import DictConfig

# ==============================================================================
# Constants
# ==============================================================================
APP_NAME: str = "RWA-Core"

_LEDGER_CLIENT_KEYS = (
    "submit_timeout",
    "query_timeout",
    "max_retries",
    "retry_min_wait",
    "retry_max_wait",
    "circuit_breaker_threshold",
    "circuit_breaker_timeout",
)


# ==============================================================================
# Logging Configuration
# ==============================================================================
def configure_logging(*, json_output: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog for production-grade logging.

    Args:
        json_output: If True, output JSON. If False, output human-readable logs.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Processor chain: each processor transforms the event dict
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ==============================================================================
# Service Graph
# ==============================================================================
def register_wallets(cfg: DictConfig, wallets: WalletDirectory, gateway: Any) -> None:
    """Register configured wallets.

    ``wallets.accounts`` holds ``{id, seed}`` pairs for a real ledger.
    ``wallets.demo`` lists wallet ids that get a funded simulator account
    (mock ledger only).
    """
    log = structlog.get_logger()
    wallets_cfg = cfg.get("wallets") or {}

    for account in wallets_cfg.get("accounts") or []:
        wallets.register(str(account["id"]), XRPLSigner(str(account["seed"])))

    demo_ids = wallets_cfg.get("demo") or []
    if demo_ids and not isinstance(gateway, MockLedger):
        log.warning("Demo wallets require the mock ledger, skipping", count=len(demo_ids))
        return
    for wallet_id in demo_ids:
        address = generate_address()
        gateway.fund(address, wallets_cfg.get("demo_funding", 1000))
        wallets.register(str(wallet_id), MockSigner(address))


def build_from_config(cfg: DictConfig) -> Services:
    """Instantiate store and gateway from ``_target_`` entries and wire services."""
    store = instantiate(cfg.store)
    gateway = instantiate(cfg.ledger.gateway)
    wallets = WalletDirectory()
    register_wallets(cfg, wallets, gateway)

    ledger_options = {
        key: cfg.ledger[key] for key in _LEDGER_CLIENT_KEYS if cfg.ledger.get(key) is not None
    }
    return build_services(
        store=store,
        gateway=gateway,
        wallets=wallets,
        ledger_options=ledger_options,
        units_per_token=str(cfg.tokenization.get("units_per_token", 100)),
        default_book_limit=int(cfg.dex.get("default_book_limit", 20)),
    )


# ==============================================================================
# Application Bootstrap
# ==============================================================================
@hydra.main(version_base=None, config_path="../../../conf", config_name="main")
def main(cfg: DictConfig) -> None:
    """Application entrypoint with Hydra configuration injection.

    Args:
        cfg: Resolved configuration from Hydra.
    """
    import uvicorn

    from rwa_core.api.app import create_app

    is_debug: bool = bool(cfg.get("debug", False))
    env: str = str(cfg.get("env", "dev"))
    log_level: str = "DEBUG" if is_debug else "INFO"
    json_output: bool = env != "dev"  # Human-readable in dev, JSON in prod/staging

    configure_logging(json_output=json_output, log_level=log_level)
    log = structlog.get_logger()

    log.info(
        "Initializing application",
        app=APP_NAME,
        version=__version__,
        env=env,
        debug=is_debug,
    )

    try:
        OmegaConf.resolve(cfg)
    except Exception as e:
        log.error("Configuration resolution failed", error=str(e))
        raise

    if is_debug:
        log.debug("Resolved configuration", config=OmegaConf.to_yaml(cfg))

    services = build_from_config(cfg)
    app = create_app(services)

    log.info(
        "System ready",
        app=APP_NAME,
        host=cfg.server.host,
        port=cfg.server.port,
        gateway=type(services.gateway).__name__,
        store=type(services.store).__name__,
    )
    uvicorn.run(
        app,
        host=str(cfg.server.host),
        port=int(cfg.server.port),
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    main()
