"""
Dashboard service: one object that owns the API client and every analysis
component, shared by the HTTP server, the CLI and the background poller.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config.paths import DATA_DIR, NEW_TOKENS_FILE, TOKEN_LIST_FILE, TOKEN_METRICS_FILE
from config.settings import METRICS_ITEM_DELAY, TRENDING_PAGE_URL
from src.analysis.swap_recommender import SwapRecommender, generate_recommendation_report
from src.analysis.token_comparison import TokenComparator, generate_comparison_report
from src.analysis.token_filter import filter_and_export, get_filter_summary
from src.core.token_discovery import TokenDiscovery
from src.core.token_metrics import TokenMetricsService, has_detailed_metrics
from src.exporters.exporter import DataExporter
from src.monitors.trending_meme_scraper import TrendingMemeScraper
from src.utils.data_validator import parse_number
from utils.api_client import LIVE, SYNTHETIC, OKXClient

logger = logging.getLogger(__name__)

MIXED = "mixed"
DASHBOARD_TOP_N = 5
EXPORT_TOP_N = 10

EXPORT_TYPES = ("new-tokens", "trending-memes", "comparisons", "recommendations", "dashboard")


def dedupe_by_address(*groups: Iterable[dict]) -> List[dict]:
    """Concatenate token lists, keeping the first token seen for each address."""
    seen = set()
    combined = []
    for group in groups:
        for token in group or []:
            key = str(token.get("address") or "").lower()
            if key in seen:
                continue
            seen.add(key)
            combined.append(token)
    return combined


def average(tokens: List[dict], field: str) -> float:
    if not tokens:
        return 0
    return sum(parse_number(t.get(field)) for t in tokens) / len(tokens)


class DashboardService:
    def __init__(self, client: Optional[OKXClient] = None,
                 data_dir: Optional[Path] = None,
                 page_url: Optional[str] = TRENDING_PAGE_URL,
                 item_delay: float = METRICS_ITEM_DELAY):
        self.client = client or OKXClient()
        data_dir = Path(data_dir or DATA_DIR)

        self.exporter = DataExporter(data_dir)
        self.discovery = TokenDiscovery(
            self.client,
            token_list_path=data_dir / TOKEN_LIST_FILE.name,
            new_tokens_path=data_dir / NEW_TOKENS_FILE.name
        )
        self.metrics = TokenMetricsService(
            self.client,
            discovery=self.discovery,
            metrics_path=data_dir / TOKEN_METRICS_FILE.name,
            item_delay=item_delay
        )
        self.scraper = TrendingMemeScraper(self.client, self.discovery, self.exporter, page_url)
        self.comparator = TokenComparator(self.metrics, self.exporter)
        self.recommender = SwapRecommender(self.metrics, self.exporter)

    async def close(self):
        await self.client.close()

    def default_source(self) -> str:
        if self.client.use_real_api and self.client.has_credentials():
            return LIVE
        return SYNTHETIC

    def summarize_source(self, *groups: Iterable[dict]) -> str:
        """live or synthetic when every tagged record agrees, mixed otherwise."""
        sources = {
            record.get("source")
            for group in groups for record in (group or [])
            if isinstance(record, dict) and record.get("source")
        }
        if not sources:
            return self.default_source()
        if len(sources) == 1:
            return sources.pop()
        return MIXED

    async def resolve_tokens(self, tokens: List[Any]) -> List[dict]:
        """Accept token dicts or bare addresses; addresses are looked up."""
        resolved = []
        for token in tokens or []:
            if isinstance(token, dict):
                resolved.append(token)
            elif isinstance(token, str) and token.strip():
                address = token.strip()
                info = await self.discovery.get_token_by_address(address)
                resolved.append({**info, "address": address} if info else {"address": address})
        return resolved

    async def get_new_tokens(self) -> Tuple[List[dict], str]:
        tokens = await self.discovery.discover_new_tokens()
        return tokens, self.summarize_source(tokens)

    async def get_trending(self) -> Tuple[List[dict], str]:
        tokens = await self.scraper.get_trending_meme_coins()
        return tokens, self.summarize_source(tokens)

    async def collect_candidates(self) -> Tuple[List[dict], List[dict], List[dict]]:
        """New tokens, trending memes, and both combined without duplicate addresses."""
        new_tokens, trending = await asyncio.gather(
            self.discovery.discover_new_tokens(),
            self.scraper.get_trending_meme_coins()
        )
        return new_tokens, trending, dedupe_by_address(new_tokens, trending)

    async def get_token_metrics(self, address: str) -> Tuple[Optional[dict], str]:
        metrics = await self.metrics.get_token_metrics(address)
        return metrics, self.summarize_source([metrics] if metrics else [])

    async def _ensure_metrics(self, tokens: List[dict]) -> List[dict]:
        """Caller-supplied snapshots are used as they are; bare tokens get fetched metrics."""
        if not tokens or has_detailed_metrics(tokens):
            return tokens
        return await self.metrics.get_detailed_metrics(tokens, save=False)

    async def compare(self, tokens: List[Any]) -> Tuple[List[dict], str, str]:
        """Returns comparison rows, the markdown report and the data source."""
        detailed = await self._ensure_metrics(await self.resolve_tokens(tokens))
        rows = await self.comparator.compare_tokens(detailed)
        return rows, generate_comparison_report(rows), self.summarize_source(detailed)

    async def recommend(self, tokens: Optional[List[Any]] = None) -> Tuple[List[dict], str, str]:
        """Recommendations for the given tokens, or for new and trending tokens when none are given."""
        if tokens:
            candidates = await self.resolve_tokens(tokens)
        else:
            _, _, candidates = await self.collect_candidates()
        detailed = await self._ensure_metrics(candidates)
        recommendations = await self.recommender.generate_recommendations(detailed)
        return recommendations, generate_recommendation_report(recommendations), self.summarize_source(detailed)

    async def filter_tokens(self, filters: Optional[dict] = None, sort_by: Optional[str] = None,
                            ascending: bool = False, export: bool = False) -> Tuple[List[dict], dict, str]:
        _, _, candidates = await self.collect_candidates()
        filtered = await filter_and_export(
            candidates,
            filters or {},
            sort_by or "volume24h",
            bool(ascending),
            self.exporter if export else None
        )
        summary = get_filter_summary(candidates, filtered, filters or {})
        return filtered, summary, self.summarize_source(candidates)

    async def get_market_overview(self) -> dict:
        return await self.metrics.get_market_overview()

    async def get_dashboard_data(self) -> Tuple[dict, str]:
        new_tokens, trending, _ = await self.collect_candidates()
        combined = dedupe_by_address(new_tokens[:DASHBOARD_TOP_N], trending[:DASHBOARD_TOP_N])

        detailed = await self.metrics.get_detailed_metrics(combined)
        comparison_results, recommendations = await asyncio.gather(
            self.comparator.compare_tokens(detailed),
            self.recommender.generate_recommendations(detailed)
        )

        top_gainer = max(trending, key=lambda t: parse_number(t.get("priceChange24h"))) if trending else None
        data = {
            "newTokens": new_tokens,
            "trendingMemes": trending,
            "tokenMetrics": detailed,
            "comparisonResults": comparison_results,
            "recommendations": recommendations,
            "topToken": new_tokens[0] if new_tokens else None,
            "topGainer": top_gainer,
            "stats": {
                "totalNewTokens": len(new_tokens),
                "totalTrendingMemes": len(trending),
                "averageVolume": round(average(new_tokens, "volume24h")),
                "averagePrice": average(new_tokens, "priceUSD")
            }
        }
        return data, self.summarize_source(new_tokens, trending, detailed)

    async def export_data(self, export_type: str) -> Dict[str, Any]:
        """
        Regenerate and export one data set.

        Raises:
            ValueError: Unknown export type
        """
        if export_type not in EXPORT_TYPES:
            raise ValueError(f"Unknown export type: {export_type}")

        logger.info(f"Exporting {export_type}")
        if export_type == "new-tokens":
            tokens = await self.discovery.discover_new_tokens()
            return await self.exporter.export_to_multiple_formats("newTokens", tokens)

        if export_type == "trending-memes":
            trending = await self.scraper.get_trending_meme_coins()
            return await self.exporter.export_trending_memes(trending)

        new_tokens = await self.discovery.discover_new_tokens()
        comparator = TokenComparator(self.metrics)
        recommender = SwapRecommender(self.metrics)

        if export_type == "comparisons":
            rows = await comparator.compare_tokens(new_tokens[:EXPORT_TOP_N])
            return await self.exporter.export_comparison_results(rows)

        if export_type == "recommendations":
            recommendations = await recommender.generate_recommendations(new_tokens[:EXPORT_TOP_N])
            return await self.exporter.export_recommendations(recommendations)

        trending = await self.scraper.get_trending_meme_coins()
        metrics = await self.metrics.get_detailed_metrics(new_tokens[:DASHBOARD_TOP_N], save=False)
        return await self.exporter.export_dashboard_data({
            "newTokens": new_tokens,
            "trendingMemes": trending,
            "tokenMetrics": metrics,
            "comparisonResults": await comparator.compare_tokens(new_tokens[:EXPORT_TOP_N]),
            "recommendations": await recommender.generate_recommendations(new_tokens[:EXPORT_TOP_N])
        })
