"""Global enums — values are the exact strings stored in snapshot documents."""

from enum import Enum


class PriceSource(str, Enum):
    SEED = "seed"
    MANUAL = "manual"
    SESSION_SKIP = "session-skip"
    API = "api"


class InstrumentPeriod(str, Enum):
    MONTHLY = "MONTHLY"
    DAILY = "DAILY"


class Outcome(str, Enum):
    YES = "YES"
    NO = "NO"


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class MarketKind(str, Enum):
    SYNTHETIC = "SYNTHETIC"
    PREDICTION = "PREDICTION"


class OrderType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SETTLEMENT = "SETTLEMENT"


class SettlementResult(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
