import os

from dotenv import load_dotenv

# Paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

load_dotenv(os.path.join(BASE_DIR, ".env"))

# Runtime Settings (overridable through .env)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ANALYSIS_CACHE_TTL_SECONDS = int(os.getenv("ANALYSIS_CACHE_TTL_SECONDS", "10"))
BACKTEST_START_CAPITAL = float(os.getenv("BACKTEST_START_CAPITAL", "100000000"))

# API Settings
API_TITLE = "MarketPulse Quant API"
API_VERSION = "1.0.0"

# Market Calendar
TRADING_DAYS_YEAR = 252

# Indicator Settings
RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
BB_PERIOD = 20
BB_STD_DEV = 2.0
ATR_PERIOD = 14
STOCH_K_PERIOD = 14
STOCH_D_PERIOD = 3

# Quant Blender Settings
MOMENTUM_PERIOD = 10
VOLATILITY_PERIOD = 20
TREND_PERIOD = 20
SR_MIN_BARS = 20
SR_PIVOT_WINDOW = 2
SR_TOLERANCE_PCT = 0.02
SR_LEVELS = 3

SCORE_WEIGHTS = {
    "technical": 0.4,
    "fundamental": 0.3,
    "bandarmology": 0.3,
}

# Backtest Settings
BACKTEST_LOOKBACK = 50
BACKTEST_MIN_EXTRA_BARS = 10
