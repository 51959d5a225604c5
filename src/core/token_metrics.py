import asyncio
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import numpy as np
from tqdm.asyncio import tqdm

from config.paths import TOKEN_METRICS_FILE
from config.settings import APP_VERSION, BATCH_DELAY, BATCH_SIZE, METRICS_ITEM_DELAY, TRADES_LIMIT
from src.core.models import isoformat, utc_now
from src.core.token_discovery import TokenDiscovery
from src.utils.data_validator import (
    DataValidationError,
    parse_number,
    parse_timestamp,
    validate_swap,
    validate_token_metrics
)
from utils.api_client import OKXClient

logger = logging.getLogger(__name__)

RECENT_SWAPS_KEPT = 10


def empty_derived() -> Dict:
    return {
        "swapsLastHour": 0,
        "avgSwapSize": 0,
        "volatility": 0,
        "holderGrowthRate": 0,
        "buyVsSellRatio": 0.5,
        "tradingActivity": 0,
        "totalTradesAnalyzed": 0,
        "lastTradeTime": None
    }


def has_detailed_metrics(tokens: List[dict]) -> bool:
    """True when the list already carries derived metrics, judged by its first token."""
    return bool(tokens) and bool(tokens[0].get("derived"))


def calculate_buy_vs_sell_ratio(swaps: List[dict]) -> float:
    """Share of buys in the batch; 0.5 (neutral) when there is no data."""
    if not swaps:
        return 0.5
    buys = sum(1 for swap in swaps if swap.get("type") == "buy")
    return buys / len(swaps)


def calculate_volatility(prices: List[float]) -> float:
    """
    Price range over the maximum price of one trade batch: (max - min) / max.

    This is a point-in-time spread of whatever trades were just fetched, not a
    rolling variance. Non-positive prices are ignored and fewer than two
    usable prices give 0.
    """
    values = np.asarray([p for p in prices if p > 0], dtype=float)
    if values.size < 2:
        return 0.0
    high = values.max()
    return float((high - values.min()) / high)


def calculate_holder_growth_rate(holders: float, listing_time, now: Optional[datetime] = None) -> float:
    """Holders per hour since listing, with the age floored at one hour."""
    listed_at = parse_timestamp(listing_time)
    if holders <= 0 or listed_at is None:
        return 0.0
    now = now or utc_now()
    age_hours = max(1.0, (now - listed_at).total_seconds() / 3600)
    return holders / age_hours


def calculate_derived_metrics(metrics: Optional[dict], swaps: Optional[List[dict]],
                              now: Optional[datetime] = None) -> dict:
    """
    Attach a `derived` block computed in a single pass over the trade batch.

    Args:
        metrics: Ticker-level metrics for one token
        swaps: Swap records (dicts) most recent first
        now: Reference time, defaults to the current UTC time

    Returns:
        dict: A copy of metrics with the derived block added
    """
    result = dict(metrics or {})
    swaps = swaps if isinstance(swaps, list) else []
    now = now or utc_now()

    if not swaps:
        result["derived"] = empty_derived()
        return result

    try:
        one_hour_ago = now - timedelta(hours=1)
        swaps_last_hour = 0
        total_usd = 0.0
        prices = []
        for swap in swaps:
            swap_time = parse_timestamp(swap.get("timestamp"))
            if swap_time is not None and one_hour_ago <= swap_time <= now:
                swaps_last_hour += 1
            total_usd += parse_number(swap.get("amountUSD"))
            prices.append(parse_number(swap.get("priceUSD")))

        avg_swap_size = total_usd / len(swaps)
        volatility = calculate_volatility(prices)
        trading_activity = (
            float(np.log10(swaps_last_hour + 1) * np.log10(avg_swap_size + 1))
            if swaps_last_hour > 0 else 0.0
        )
        holder_growth_rate = calculate_holder_growth_rate(
            parse_number(result.get("holders")), result.get("listingTime"), now
        )

        result["derived"] = {
            "swapsLastHour": swaps_last_hour,
            "avgSwapSize": round(avg_swap_size, 2),
            "volatility": round(volatility, 4),
            "holderGrowthRate": round(holder_growth_rate, 2),
            "buyVsSellRatio": calculate_buy_vs_sell_ratio(swaps),
            "tradingActivity": round(trading_activity, 2),
            "totalTradesAnalyzed": len(swaps),
            "lastTradeTime": swaps[0].get("timestamp")
        }
    except Exception as e:
        logger.error(f"Error calculating derived metrics: {str(e)}")
        result["derived"] = empty_derived()
    return result


class TokenMetricsService:
    def __init__(self, client: OKXClient,
                 discovery: Optional[TokenDiscovery] = None,
                 metrics_path: Path = TOKEN_METRICS_FILE,
                 item_delay: float = METRICS_ITEM_DELAY,
                 trades_limit: int = TRADES_LIMIT):
        self.client = client
        self.discovery = discovery
        self.metrics_path = Path(metrics_path)
        self.item_delay = item_delay
        self.trades_limit = trades_limit

    async def fetch_token_metrics(self, token: dict) -> Optional[dict]:
        """Fetch ticker-level metrics for one token."""
        endpoint, params = self.client.adapter.ticker(token)
        result = await self.client.request(endpoint, "GET", params)
        if not result.ok:
            logger.warning(f"Ticker request failed for {token.get('symbol') or token.get('address')}: "
                           f"{result.error}")
            return None

        metrics = self.client.adapter.parse_ticker(result.records, token)
        if metrics is None:
            logger.warning(f"No ticker data returned for {token.get('symbol') or token.get('address')}")
            return None
        metrics["source"] = result.source
        return metrics

    async def fetch_token_swaps(self, token: dict, limit: Optional[int] = None) -> List[dict]:
        """Fetch recent trades. Records that fail validation are dropped."""
        endpoint, params = self.client.adapter.trades(token, limit or self.trades_limit)
        result = await self.client.request(endpoint, "GET", params)
        if not result.ok:
            logger.warning(f"Trades request failed for {token.get('symbol') or token.get('address')}: "
                           f"{result.error}")
            return []

        swaps = []
        for swap in self.client.adapter.parse_trades(result.records, token):
            record = swap.to_dict()
            try:
                validate_swap(record)
            except DataValidationError as e:
                logger.warning(f"Invalid swap data dropped: {str(e)}")
                continue
            swaps.append(record)
        return swaps

    async def _detailed_metrics_for(self, token: dict) -> Optional[dict]:
        metrics = await self.fetch_token_metrics(token)
        if metrics is None:
            return None

        swaps = await self.fetch_token_swaps(token)
        enhanced = calculate_derived_metrics(metrics, swaps)
        enhanced["recentSwaps"] = swaps[:RECENT_SWAPS_KEPT]
        enhanced["totalSwapsAnalyzed"] = len(swaps)

        try:
            validate_token_metrics(enhanced)
        except DataValidationError as e:
            logger.warning(f"Metrics validation failed for {enhanced.get('symbol')}, including anyway: {str(e)}")
        return enhanced

    async def get_detailed_metrics(self, tokens: List[dict], save: bool = True) -> List[dict]:
        """
        Fetch metrics and trades for each token in sequence, with a fixed
        delay between tokens. A token that fails is logged and skipped.
        """
        tokens = tokens if isinstance(tokens, list) else []
        logger.info(f"Getting detailed metrics for {len(tokens)} tokens")

        detailed = []
        for index, token in enumerate(tokens):
            if not token:
                logger.warning(f"Skipping invalid token at index {index}")
                continue
            try:
                metrics = await self._detailed_metrics_for(token)
                if metrics is not None:
                    detailed.append(metrics)
                else:
                    logger.warning(f"No metrics returned for token {token.get('symbol') or token.get('address')}")
            except Exception as e:
                logger.error(f"Error processing token at index {index}: {str(e)}")

            if index < len(tokens) - 1 and self.item_delay > 0:
                await asyncio.sleep(self.item_delay)

        if save:
            await self.save_metrics(detailed)
        logger.info(f"Successfully processed {len(detailed)} tokens with detailed metrics")
        return detailed

    async def save_metrics(self, metrics: List[dict]) -> bool:
        document = {
            "metadata": {
                "timestamp": isoformat(utc_now()),
                "count": len(metrics),
                "version": APP_VERSION
            },
            "data": metrics
        }
        try:
            self.metrics_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.metrics_path, 'w') as f:
                await f.write(json.dumps(document, indent=2))
            logger.info(f"Saved metrics for {len(metrics)} tokens to {self.metrics_path}")
            return True
        except Exception as e:
            logger.error(f"Error saving metrics to file: {str(e)}")
            return False

    async def get_token_metrics(self, address: str) -> Optional[dict]:
        """Detailed metrics for a single token address, or None."""
        if not address:
            logger.warning("get_token_metrics called with no address")
            return None

        token = {"address": address}
        if self.discovery is not None:
            info = await self.discovery.get_token_by_address(address)
            if info:
                token.update(info)
                token["address"] = address

        results = await self.get_detailed_metrics([token], save=False)
        return results[0] if results else None

    async def batch_process_tokens(self, tokens: List[dict], batch_size: int = BATCH_SIZE,
                                   delay: float = BATCH_DELAY) -> List[dict]:
        """
        Fetch detailed metrics in concurrent groups of `batch_size`, waiting
        `delay` seconds between groups. Failed tokens are skipped.
        """
        tokens = tokens if isinstance(tokens, list) else []
        results = []
        total_batches = (len(tokens) + batch_size - 1) // batch_size
        logger.info(f"Batch processing {len(tokens)} tokens in batches of {batch_size}")

        with tqdm(total=len(tokens), desc="Fetching token metrics") as pbar:
            for start in range(0, len(tokens), batch_size):
                batch = tokens[start:start + batch_size]
                logger.debug(f"Processing batch {start // batch_size + 1}/{total_batches}")

                outcomes = await asyncio.gather(
                    *(self._detailed_metrics_for(token) for token in batch),
                    return_exceptions=True
                )
                for token, outcome in zip(batch, outcomes):
                    if isinstance(outcome, Exception):
                        logger.warning(f"Failed to process token {token.get('symbol') or token.get('address')}: "
                                       f"{str(outcome)}")
                    elif outcome is not None:
                        results.append(outcome)
                    pbar.update(1)

                if start + batch_size < len(tokens) and delay > 0:
                    await asyncio.sleep(delay)

        logger.info(f"Batch processing completed. Successfully processed {len(results)}/{len(tokens)} tokens")
        return results

    async def get_market_overview(self) -> dict:
        """Market-wide summary: pair count, total volume, top gainers and losers."""
        endpoint, params = self.client.adapter.market_overview()
        result = await self.client.request(endpoint, "GET", params)
        tickers = self.client.adapter.parse_market_tickers(result.records) if result.ok else []
        if not result.ok:
            logger.warning(f"Market overview request failed: {result.error}")

        gainers = sorted((t for t in tickers if t["change"] > 0), key=lambda t: t["change"], reverse=True)
        losers = sorted((t for t in tickers if t["change"] < 0), key=lambda t: t["change"])
        return {
            "totalPairs": len(tickers),
            "totalVolume24h": sum(t["volume"] for t in tickers),
            "topGainers": gainers[:10],
            "topLosers": losers[:10],
            "timestamp": isoformat(utc_now()),
            "source": result.source
        }
