"""
Side-by-side comparison of tokens on volume, liquidity, holders, volatility
and holder growth.
"""

import logging
from typing import List, Optional

from src.core.token_metrics import TokenMetricsService, has_detailed_metrics
from src.exporters.exporter import DataExporter
from src.utils.data_validator import parse_number, round_half_up

logger = logging.getLogger(__name__)

# Score weights
VOLUME_WEIGHT = 0.35
LIQUIDITY_WEIGHT = 0.25
HOLDER_WEIGHT = 0.15
VOLATILITY_WEIGHT = 0.10
GROWTH_WEIGHT = 0.15

DEFAULT_COMPONENT_SCORE = 50


def calculate_token_score(token: dict) -> int:
    """
    Composite 0-100 score for a token with detailed metrics.

    Tokens missing volume, liquidity or holders score 0. Volatility and
    holder growth default to a neutral 50 when there is no derived block.
    """
    try:
        volume = parse_number(token.get("volume24h")) if token else 0
        liquidity = parse_number(token.get("liquidity")) if token else 0
        holders = parse_number(token.get("holders")) if token else 0
        if not volume or not liquidity or not holders:
            logger.warning(f"Invalid token data for scoring: {token.get('symbol') if token else None}")
            return 0

        derived = token.get("derived") or {}
        volume_score = min(100, volume / 1000)
        liquidity_score = min(100, liquidity / 500)
        holders_score = min(100, holders / 5)
        volatility_score = (
            min(100, parse_number(derived["volatility"]) * 200)
            if derived.get("volatility") is not None else DEFAULT_COMPONENT_SCORE
        )
        growth_score = (
            min(100, parse_number(derived["holderGrowthRate"]) * 50)
            if derived.get("holderGrowthRate") is not None else DEFAULT_COMPONENT_SCORE
        )

        score = (
            VOLUME_WEIGHT * volume_score +
            LIQUIDITY_WEIGHT * liquidity_score +
            HOLDER_WEIGHT * holders_score +
            VOLATILITY_WEIGHT * volatility_score +
            GROWTH_WEIGHT * growth_score
        )
        return round_half_up(score)
    except Exception as e:
        logger.error(f"Error calculating token score: {str(e)}")
        return 0


def prepare_for_comparison(tokens: List[dict]) -> List[dict]:
    """Project detailed metrics into comparison rows. Rows that fail are dropped."""
    rows = []
    for token in tokens or []:
        try:
            derived = token.get("derived")
            rows.append({
                "symbol": token.get("symbol") or "Unknown",
                "name": token.get("name") or "Unknown Token",
                "address": token.get("address"),
                "priceUSD": token.get("priceUSD"),
                "volume24h": token.get("volume24h"),
                "liquidity": token.get("liquidity"),
                "priceChange24h": token.get("priceChange24h") or 0,
                "holders": token.get("holders"),
                "swapsLastHour": derived.get("swapsLastHour", 0) if derived else 0,
                "volatility": f"{parse_number(derived.get('volatility')) * 100:.2f}" if derived else "0",
                "holderGrowthRate": f"{parse_number(derived.get('holderGrowthRate')):.2f}" if derived else "0",
                "score": calculate_token_score(token)
            })
        except Exception as e:
            logger.error(f"Error preparing token for comparison: {str(e)}")
    return rows


def _leaders(rows: List[dict], field: str, limit: int = 3) -> List[dict]:
    return sorted(rows, key=lambda r: parse_number(r.get(field)), reverse=True)[:limit]


def generate_comparison_report(rows: List[dict]) -> str:
    """Markdown comparison table with the top token and per-metric leaders."""
    if not rows:
        return "No tokens to compare."

    lines = ["# Token Comparison Report", ""]
    lines.append("| Symbol | Price | 24h Change | Volume | Liquidity | Holders | Score |")
    lines.append("|--------|-------|------------|--------|-----------|---------|-------|")
    for row in rows:
        lines.append(
            f"| {row['symbol']} | ${row['priceUSD']} | {row['priceChange24h']}% | "
            f"${row['volume24h']} | ${row['liquidity']} | {row['holders']} | {row['score']} |"
        )

    top = rows[0]
    lines.append("")
    lines.append("## Analysis")
    lines.append("")
    lines.append(
        f"**{top['symbol']}** has the highest overall score of **{top['score']}** "
        f"based on volume, liquidity, holder count, and other metrics."
    )

    lines.append("")
    lines.append("**Volume Leaders:**")
    for idx, row in enumerate(_leaders(rows, "volume24h"), 1):
        lines.append(f"{idx}. {row['symbol']}: ${row['volume24h']}")

    lines.append("")
    lines.append("**Liquidity Leaders:**")
    for idx, row in enumerate(_leaders(rows, "liquidity"), 1):
        lines.append(f"{idx}. {row['symbol']}: ${row['liquidity']}")

    if top.get("volatility"):
        lines.append("")
        lines.append("**Highest Volatility:**")
        for idx, row in enumerate(_leaders(rows, "volatility"), 1):
            lines.append(f"{idx}. {row['symbol']}: {row['volatility']}%")

    return "\n".join(lines) + "\n"


class TokenComparator:
    def __init__(self, metrics_service: TokenMetricsService, exporter: Optional[DataExporter] = None):
        self.metrics_service = metrics_service
        self.exporter = exporter

    async def compare_tokens(self, tokens: List[dict]) -> List[dict]:
        """Score tokens side by side, highest score first, and export the rows."""
        tokens = tokens or []
        logger.info(f"Comparing {len(tokens)} tokens")

        detailed = tokens
        if tokens and not has_detailed_metrics(tokens):
            logger.debug("Fetching detailed metrics for token comparison")
            detailed = await self.metrics_service.get_detailed_metrics(tokens, save=False)

        rows = prepare_for_comparison(detailed)
        rows.sort(key=lambda r: r["score"], reverse=True)

        if self.exporter is not None:
            await self.exporter.export_comparison_results(rows)
        return rows
