"""
General settings and configuration for the token analytics dashboard.
Values can be overridden through environment variables (or a .env file).
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("false", "0", "no", "off")


SERVICE_NAME = "okc-token-dashboard"
APP_VERSION = "1.0.0"
ENVIRONMENT = os.getenv("NODE_ENV", os.getenv("ENVIRONMENT", "development"))

# Upstream API
API_BASE_URL = os.getenv("API_URL", "https://web3.okx.com")
API_ADAPTER = os.getenv("API_ADAPTER", "dex")   # "dex" or "market"
CHAIN_ID = os.getenv("CHAIN_ID", "66")          # OKC
QUOTE_TOKEN = os.getenv("QUOTE_TOKEN", "USDT")
USER_AGENT = f"OKC-Token-Dashboard/{APP_VERSION}"
REQUEST_TIMEOUT = 10  # seconds

# Feature flags
USE_REAL_API = _env_bool("USE_REAL_API", True)
ENABLE_CACHING = _env_bool("ENABLE_CACHING", True)
ENABLE_RATE_LIMITING = _env_bool("ENABLE_RATE_LIMITING", True)
USE_MOCK_ON_FAILURE = _env_bool("USE_MOCK_ON_FAILURE", True)

# Cache and rate limiting
CACHE_TTL = int(os.getenv("CACHE_TTL", "600"))  # seconds
REQUEST_DELAY = int(os.getenv("REQUEST_DELAY_MS", "200")) / 1000.0
RATE_LIMIT_BURST = int(os.getenv("RATE_LIMIT_BURST", "1"))

# HTTP server
SERVER_HOST = os.getenv("HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("PORT", "3000"))
API_PREFIX = "/api"

# Meme token classification
MEME_KEYWORDS = ["pepe", "doge", "shib", "inu", "elon", "moon", "cat", "floki", "wojak"]
MEME_MIN_PRICE = 0.000000001
MEME_MAX_PRICE = 1.0

# New token thresholds
NEW_TOKEN_MAX_AGE_HOURS = 24
NEW_TOKEN_MIN_VOLUME = 5000
NEW_TOKEN_MIN_LIQUIDITY = 1000

# Dashboard defaults
DASHBOARD_MIN_LIQUIDITY = 5000
DASHBOARD_MIN_VOLUME = 10000
DASHBOARD_MAX_AGE_HOURS = 48

# Time intervals
DISCOVERY_INTERVAL = 15 * 60  # 15 minutes in seconds
METRICS_INTERVAL = 5 * 60     # 5 minutes in seconds

# Trending
TRENDING_PAGE_URL = os.getenv("TRENDING_PAGE_URL", "https://web3.okx.com/meme-pump")
TRENDING_LIMIT = 20

# Metrics collection
MOCK_TOKEN_COUNT = 20
TRADES_LIMIT = 100
METRICS_ITEM_DELAY = 0.2  # seconds between tokens
BATCH_SIZE = 5
BATCH_DELAY = 1.0
