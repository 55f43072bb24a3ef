"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api.router import init_router, router
from .config import AppConfig, get_config_path, load_config
from .state.allocator import Allocator
from .state.entry_queue import EntryQueue
from .state.rate_registry import RateRegistry
from .state.session_ledger import SessionLedger
from .state.spot_pool import SpotPool
from .state.store import ParkingStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_allocator(
    config: AppConfig,
    store: ParkingStore | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> Allocator:
    """
    Wire the store and the core components together.

    Args:
        config: Application configuration
        store: Existing store to use instead of a fresh in-memory one
        clock: Source of "now" shared by every component

    Returns:
        Allocator owning the rate registry, spot pool, ledger and queue
    """
    if store is None:
        store = ParkingStore(
            spot_ids=config.lot.spot_ids,
            retry_attempts=config.store.retry_attempts,
            clock=clock,
        )

    rates = RateRegistry(
        store,
        default_base=config.billing.default_base,
        default_per_minute=config.billing.default_per_minute,
        clock=clock,
    )
    spots = SpotPool(store, clock=clock)
    ledger = SessionLedger(store, included_minutes=config.billing.included_minutes, clock=clock)
    queue = EntryQueue(store, ledger, clock=clock)

    return Allocator(store, rates, spots, ledger, queue)


def load_app_config() -> AppConfig:
    """Load the YAML config, falling back to defaults when it is missing."""
    config_path = get_config_path()
    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}, using defaults")
        return AppConfig()

    config = load_config(config_path)
    logger.info(f"Loaded configuration from {config_path}")
    return config


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Parking Allocator...")

    config = load_app_config()
    allocator = build_allocator(config)
    rate = allocator.rates.ensure_active()
    logger.info(
        f"Managing {len(config.lot.spot_ids)} spot(s); active rate base={rate.base_cost} "
        f"per_minute={rate.per_minute_cost}"
    )

    init_router(allocator, history_limit=config.api.history_limit)

    logger.info(f"Parking Allocator ready on http://{config.api.host}:{config.api.port}")

    yield  # Application runs here

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Parking Allocator",
    description="API for allocating parking spots, billing stays and queueing arrivals",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


def main():
    """Run the application."""
    # Load config just to get API settings
    cfg = load_app_config()

    uvicorn.run(
        "parking_allocator.main:app",
        host=cfg.api.host,
        port=cfg.api.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
