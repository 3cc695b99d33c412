"""Engine construction and the FastAPI dependency that hands it to routers."""

import logging
from pathlib import Path

from starlette.requests import HTTPConnection

from config.settings import Settings
from src.ms_common.json_store import JsonFileRepository
from src.ms_engine.engine.engine import EngineConfig, EngineRepositories, MarketEngine

logger = logging.getLogger(__name__)

SNAPSHOT_FILES = {
    "prices": "prices.json",
    "chances": "chances.json",
    "session": "sessionState.json",
    "accounts": "accounts.json",
    "activity": "activity.json",
}


def file_repositories(data_dir: str | Path) -> EngineRepositories:
    root = Path(data_dir)
    return EngineRepositories(
        **{name: JsonFileRepository(root / filename) for name, filename in SNAPSHOT_FILES.items()}
    )


def engine_config(settings: Settings) -> EngineConfig:
    return EngineConfig(
        starting_cash=settings.STARTING_CASH,
        max_skip_sessions=settings.MAX_SKIP_SESSIONS,
        order_history_limit=settings.ORDER_HISTORY_LIMIT,
        activity_feed_limit=settings.ACTIVITY_FEED_LIMIT,
        random_seed=settings.RANDOM_SEED,
    )


def build_engine(settings: Settings) -> MarketEngine:
    logger.info("Loading market state from %s", Path(settings.DATA_DIR).resolve())
    return MarketEngine(file_repositories(settings.DATA_DIR), engine_config(settings))


def get_engine(conn: HTTPConnection) -> MarketEngine:
    """FastAPI dependency (HTTP and WebSocket): the engine built at startup."""
    return conn.app.state.engine
