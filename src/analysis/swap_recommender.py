"""
Trading recommendations from token metrics.

Each token gets six 0-100 factor scores which are combined with fixed weights
into a final score, bucketed into one of five labels, and explained with a
list of human-readable reasons.
"""

import logging
from typing import Dict, List, Optional

from src.core.token_metrics import TokenMetricsService, has_detailed_metrics
from src.exporters.exporter import DataExporter
from src.utils.data_validator import DataValidationError, parse_int, parse_number, round_half_up, validate_recommendation

logger = logging.getLogger(__name__)

WEIGHTS = {
    "volumeLiquidityRatio": 0.25,
    "priceAction": 0.20,
    "volatility": 0.15,
    "holderGrowth": 0.20,
    "holders": 0.10,
    "liquidity": 0.10
}

DEFAULT_VOLATILITY = 0.1
DEFAULT_HOLDER_GROWTH = 0.5

POSITIVE_THRESHOLD = 70
NEGATIVE_THRESHOLD = 30


def get_recommendation_text(score: float) -> str:
    if score >= 80:
        return "Strong Buy"
    elif score >= 65:
        return "Buy"
    elif score >= 50:
        return "Hold"
    elif score >= 35:
        return "Avoid"
    return "Strong Avoid"


def vlr_score(volume: float, liquidity: float) -> float:
    ratio = volume / liquidity if liquidity > 0 else 0
    return min(100, ratio * 33.33)


def price_action_score(price_change: float) -> float:
    # 5-30% is the sweet spot; beyond 30% looks like a pump
    if 0 <= price_change <= 5:
        return price_change * 10
    elif 5 < price_change <= 30:
        return 50 + (price_change - 5) * 2
    elif price_change > 30:
        return 100 - min(100, (price_change - 30) * 2)
    return max(0, 50 + price_change * 5)


def volatility_score(volatility: float) -> float:
    if volatility < 0.05:
        return volatility * 1000
    elif volatility <= 0.15:
        return 50 + (volatility - 0.05) * 500
    return max(0, 100 - (volatility - 0.15) * 300)


def _derived_value(token: dict, field: str, default: float) -> float:
    derived = token.get("derived") or {}
    if derived.get(field) is None:
        return default
    return parse_number(derived[field], default)


def generate_reasons(scores: Dict[str, float], token: dict) -> List[str]:
    reasons = []
    volume = token.get("volume24h")
    liquidity = token.get("liquidity")
    price_change = token.get("priceChange24h")
    holders = token.get("holders")

    if scores["volumeLiquidityRatio"] >= POSITIVE_THRESHOLD:
        reasons.append(f"High trading activity relative to liquidity ({volume}/{liquidity})")
    if scores["priceAction"] >= POSITIVE_THRESHOLD:
        reasons.append(f"Favorable price movement ({price_change}% in 24h)")
    if scores["volatility"] >= POSITIVE_THRESHOLD:
        reasons.append("Optimal volatility for trading opportunities")
    if scores["holderGrowth"] >= POSITIVE_THRESHOLD:
        reasons.append("Strong holder growth rate")
    if scores["holders"] >= POSITIVE_THRESHOLD:
        reasons.append(f"Solid holder base ({holders} holders)")
    if scores["liquidity"] >= POSITIVE_THRESHOLD:
        reasons.append(f"Good liquidity (${liquidity})")

    if scores["volumeLiquidityRatio"] <= NEGATIVE_THRESHOLD:
        reasons.append("Low trading volume relative to liquidity")
    if scores["priceAction"] <= NEGATIVE_THRESHOLD:
        if parse_number(price_change) > 50:
            reasons.append(f"Potential pump and dump ({price_change}% in 24h)")
        else:
            reasons.append(f"Unfavorable price movement ({price_change}% in 24h)")
    if scores["volatility"] <= NEGATIVE_THRESHOLD:
        if _derived_value(token, "volatility", DEFAULT_VOLATILITY) > 0.2:
            reasons.append("Excessive volatility increases risk")
        else:
            reasons.append("Insufficient volatility for profitable trading")
    if scores["holderGrowth"] <= NEGATIVE_THRESHOLD:
        reasons.append("Weak holder growth rate")
    if scores["holders"] <= NEGATIVE_THRESHOLD:
        reasons.append(f"Small holder base ({holders} holders)")
    if scores["liquidity"] <= NEGATIVE_THRESHOLD:
        reasons.append(f"Limited liquidity (${liquidity})")

    return reasons


def analyze_token_for_swap(token: dict) -> Optional[dict]:
    """
    Build a recommendation for one token with detailed metrics.

    Returns:
        dict: {symbol, name, score, recommendation, analysis, reasons}, or
              None when the token cannot be analyzed
    """
    try:
        volume = parse_number(token.get("volume24h"))
        liquidity = parse_number(token.get("liquidity"))
        price_change = parse_number(token.get("priceChange24h"))
        holders = parse_int(token.get("holders"))
        volatility = _derived_value(token, "volatility", DEFAULT_VOLATILITY)
        holder_growth = _derived_value(token, "holderGrowthRate", DEFAULT_HOLDER_GROWTH)
        ratio = volume / liquidity if liquidity > 0 else 0

        scores = {
            "volumeLiquidityRatio": vlr_score(volume, liquidity),
            "priceAction": price_action_score(price_change),
            "volatility": volatility_score(volatility),
            "holderGrowth": min(100, holder_growth * 50),
            "holders": min(100, holders / 5),
            "liquidity": min(100, liquidity / 500)
        }
        final_score = round_half_up(sum(WEIGHTS[name] * value for name, value in scores.items()))

        values = {
            "volumeLiquidityRatio": f"{ratio:.2f}",
            "priceAction": f"{price_change}%",
            "volatility": f"{volatility * 100:.2f}%",
            "holderGrowth": f"{holder_growth:.2f} holders/hour",
            "holders": holders,
            "liquidity": f"${liquidity}"
        }
        recommendation = {
            "symbol": token.get("symbol") or "Unknown",
            "name": token.get("name") or "Unknown Token",
            "score": final_score,
            "recommendation": get_recommendation_text(final_score),
            "analysis": {
                name: {"value": values[name], "score": round_half_up(scores[name]), "weight": WEIGHTS[name]}
                for name in WEIGHTS
            },
            "reasons": generate_reasons(scores, token)
        }
    except Exception as e:
        logger.error(f"Error analyzing token for swap: {str(e)}")
        return None

    try:
        validate_recommendation(recommendation)
    except DataValidationError as e:
        logger.warning(f"Invalid recommendation generated for {recommendation['symbol']}: {str(e)}")
        return None
    return recommendation


def generate_recommendation_report(recommendations: List[dict]) -> str:
    if not recommendations:
        return "No recommendations available."

    lines = ["# Swap Recommendations", ""]
    for idx, rec in enumerate(recommendations, 1):
        lines.append(f"## {idx}. {rec['symbol']} ({rec['name']}) - {rec['recommendation']}")
        lines.append("")
        lines.append(f"**Score: {rec['score']}/100**")
        lines.append("")
        lines.append("### Why?")
        for reason in rec.get("reasons", []):
            lines.append(f"- {reason}")
        lines.append("")
        lines.append("### Metrics Analysis")
        for metric, data in rec.get("analysis", {}).items():
            lines.append(f"- **{metric}**: {data['value']} (Score: {data['score']})")
        lines.append("")
        lines.append("---")
        lines.append("")

    lines.append("## Disclaimer")
    lines.append("")
    lines.append(
        "These recommendations are based on quantitative metrics analysis and should not be "
        "considered financial advice. Always do your own research before making investment decisions."
    )
    return "\n".join(lines) + "\n"


class SwapRecommender:
    def __init__(self, metrics_service: TokenMetricsService, exporter: Optional[DataExporter] = None):
        self.metrics_service = metrics_service
        self.exporter = exporter

    async def generate_recommendations(self, tokens: List[dict]) -> List[dict]:
        """Recommendations for each token, best score first."""
        tokens = tokens or []
        logger.info(f"Generating recommendations for {len(tokens)} tokens")

        detailed = tokens
        if tokens and not has_detailed_metrics(tokens):
            logger.debug("Fetching detailed metrics for recommendations")
            detailed = await self.metrics_service.get_detailed_metrics(tokens, save=False)

        recommendations = []
        for token in detailed:
            recommendation = analyze_token_for_swap(token)
            if recommendation:
                recommendations.append(recommendation)
        recommendations.sort(key=lambda r: r["score"], reverse=True)

        if self.exporter is not None:
            await self.exporter.export_recommendations(recommendations)
        return recommendations
