"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.ms_broadcast.hub import BroadcastHub
from src.ms_common.errors import InstrumentNotFoundError, TickerNotFoundError
from src.ms_common.json_store import InMemoryRepository
from src.ms_engine.application.service import SNAPSHOT_FILES
from src.ms_engine.engine.engine import EngineConfig, EngineRepositories, MarketEngine
from src.ms_market.domain.chance_ledger import contract_price_for
from src.ms_market.domain.models import BASE_TICKER_PRICES, INSTRUMENTS, Instrument

FIXED_NOW = datetime(2025, 3, 4, 13, 15, tzinfo=timezone.utc)


class StubQuotes:
    """QuoteSourceProtocol with directly editable marks."""

    def __init__(self) -> None:
        self.prices: dict[str, float] = dict(BASE_TICKER_PRICES)
        self.chances: dict[str, float] = {i.id: float(i.default_chance) for i in INSTRUMENTS.values()}
        self.price_to_beat: dict[str, float] = dict(BASE_TICKER_PRICES)
        self.skip_count = 0

    def ticker_price(self, ticker: str) -> float:
        if ticker not in self.prices:
            raise TickerNotFoundError(ticker)
        return self.prices[ticker]

    def contract_price(self, instrument_id: str, outcome) -> float:
        self.instrument(instrument_id)
        return contract_price_for(self.chances[instrument_id], outcome)

    def instrument(self, instrument_id: str) -> Instrument:
        if instrument_id not in INSTRUMENTS:
            raise InstrumentNotFoundError(instrument_id)
        return INSTRUMENTS[instrument_id]

    def target_price(self, instrument: Instrument) -> float:
        return self.price_to_beat.get(instrument.category) or self.prices[instrument.category]


def make_repositories(**documents) -> EngineRepositories:
    return EngineRepositories(
        **{name: InMemoryRepository(name, documents.get(name)) for name in SNAPSHOT_FILES}
    )


def make_engine(repos: EngineRepositories | None = None, seed: int = 7, **config) -> MarketEngine:
    return MarketEngine(
        repos or make_repositories(),
        EngineConfig(random_seed=seed, **config),
        now=FIXED_NOW,
    )


@pytest.fixture
def quotes() -> StubQuotes:
    return StubQuotes()


@pytest.fixture
def build_repos():
    return make_repositories


@pytest.fixture
def build_engine():
    return make_engine


@pytest.fixture
def repos() -> EngineRepositories:
    return make_repositories()


@pytest.fixture
def engine(repos: EngineRepositories) -> MarketEngine:
    return make_engine(repos)


@pytest.fixture
def hub(engine: MarketEngine) -> BroadcastHub:
    hub = BroadcastHub()
    engine.add_listener(hub.publish)
    app.state.engine = engine
    app.state.hub = hub
    return hub


@pytest.fixture
async def client(hub: BroadcastHub) -> AsyncClient:
    """Async HTTP client over a fresh in-memory engine (lifespan is not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
