from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from src.api.endpoints import DexAdapter
from src.core.dashboard import DashboardService
from src.core.models import isoformat
from src.core.token_discovery import TokenDiscovery
from src.core.token_metrics import TokenMetricsService
from src.exporters.exporter import DataExporter
from utils.api_client import OKXClient

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def hours_before(hours: float, now: datetime = FIXED_NOW) -> str:
    return isoformat(now - timedelta(hours=hours))


@pytest.fixture
def now():
    return FIXED_NOW


@pytest_asyncio.fixture
async def client():
    """Client that never touches the network: every call resolves to synthetic data."""
    okx = OKXClient(adapter=DexAdapter(), use_real_api=False, enable_rate_limiting=False)
    yield okx
    await okx.close()


@pytest.fixture
def discovery(client, tmp_path):
    return TokenDiscovery(client, tmp_path / "tokens.json", tmp_path / "new_tokens.json")


@pytest.fixture
def metrics_service(client, discovery, tmp_path):
    return TokenMetricsService(client, discovery, tmp_path / "token_metrics.json", item_delay=0)


@pytest.fixture
def exporter(tmp_path):
    return DataExporter(tmp_path)


@pytest_asyncio.fixture
async def service(client, tmp_path):
    dashboard = DashboardService(client=client, data_dir=tmp_path, page_url=None, item_delay=0)
    yield dashboard
    await dashboard.close()


@pytest.fixture
def detailed_token():
    """A token with ticker metrics and a derived block, as produced by the metrics service."""
    return {
        "address": "0x" + "ab" * 20,
        "symbol": "PEPEOKC",
        "name": "Pepe OKC",
        "priceUSD": 0.0000123,
        "priceChange24h": 10,
        "volume24h": 30000,
        "liquidity": 50000,
        "holders": 500,
        "listingTime": hours_before(20),
        "source": "synthetic",
        "derived": {
            "swapsLastHour": 12,
            "avgSwapSize": 85.5,
            "volatility": 0.1,
            "holderGrowthRate": 2,
            "buyVsSellRatio": 0.6,
            "tradingActivity": 2.2,
            "totalTradesAnalyzed": 20,
            "lastTradeTime": hours_before(0.1)
        }
    }
