"""
Filtering, sorting and age formatting for token lists.

Filter criteria use camelCase keys:
    maxAge (hours), minVolume, maxVolume, minLiquidity, maxLiquidity,
    minHolders, memeOnly, minPriceChange, maxMarketCap
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from src.core.models import utc_now
from src.core.token_discovery import is_meme_token
from src.exporters.exporter import DataExporter
from src.utils.data_validator import parse_number, parse_timestamp, round_half_up

logger = logging.getLogger(__name__)

FILTER_KEYS = (
    "maxAge", "minVolume", "maxVolume", "minLiquidity", "maxLiquidity",
    "minHolders", "memeOnly", "minPriceChange", "maxMarketCap"
)


def _age_hours(token: dict, now: datetime) -> Optional[float]:
    listed_at = parse_timestamp(token.get("listingTime"))
    if listed_at is None:
        return None
    return (now - listed_at).total_seconds() / 3600


def _build_checks(filters: dict, now: datetime) -> List[Callable[[dict], bool]]:
    checks = []

    if filters.get("maxAge") is not None:
        max_age = parse_number(filters["maxAge"])

        def check_age(token):
            age = _age_hours(token, now)
            return age is not None and age <= max_age
        checks.append(check_age)

    bounds = [
        ("minVolume", "volume24h", lambda v, limit: v >= limit),
        ("maxVolume", "volume24h", lambda v, limit: v <= limit),
        ("minLiquidity", "liquidity", lambda v, limit: v >= limit),
        ("maxLiquidity", "liquidity", lambda v, limit: v <= limit),
        ("minHolders", "holders", lambda v, limit: v >= limit),
        ("minPriceChange", "priceChange24h", lambda v, limit: v >= limit),
        ("maxMarketCap", "marketCap", lambda v, limit: v <= limit)
    ]
    for key, field, compare in bounds:
        if filters.get(key) is None:
            continue
        limit = parse_number(filters[key])
        checks.append(lambda token, f=field, l=limit, c=compare: c(parse_number(token.get(f)), l))

    if filters.get("memeOnly"):
        checks.append(is_meme_token)

    return checks


def apply_filters(tokens: List[dict], filters: Optional[dict], now: Optional[datetime] = None) -> List[dict]:
    """Keep tokens passing every criterion present, in their original order."""
    tokens = tokens if isinstance(tokens, list) else []
    if not filters:
        return tokens

    checks = _build_checks(filters, now or utc_now())
    filtered = [token for token in tokens if token and all(check(token) for check in checks)]
    logger.info(f"Filtered {len(tokens)} tokens down to {len(filtered)}")
    return filtered


def _sort_key(value):
    if value is None:
        return (1, 0.0, "")
    number = parse_number(value, None)
    if number is not None:
        return (0, number, "")
    return (0, float("inf"), str(value))


def sort_tokens(tokens: List[dict], sort_by: str = "volume24h", ascending: bool = False) -> List[dict]:
    """
    Sort tokens by a field. Numbers and numeric strings compare numerically
    and other values compare as strings. Missing values always sort last.
    """
    tokens = tokens if isinstance(tokens, list) else []
    present = [t for t in tokens if t.get(sort_by) is not None]
    missing = [t for t in tokens if t.get(sort_by) is None]
    present.sort(key=lambda t: _sort_key(t.get(sort_by)), reverse=not ascending)
    return present + missing


def format_age(hours: int) -> str:
    if hours < 24:
        return f"{hours}h"
    days, remainder = divmod(hours, 24)
    return f"{days}d {remainder}h" if remainder else f"{days}d"


def format_tokens_with_age(tokens: List[dict], now: Optional[datetime] = None) -> List[dict]:
    now = now or utc_now()
    formatted = []
    for token in tokens or []:
        entry = dict(token)
        age = _age_hours(token, now)
        if age is None:
            entry["ageHours"] = 0
            entry["ageDisplay"] = "Unknown"
        else:
            hours = max(0, round_half_up(age))
            entry["ageHours"] = hours
            entry["ageDisplay"] = format_age(hours)
        formatted.append(entry)
    return formatted


def get_filter_summary(original: List[dict], filtered: List[dict], filters: Optional[dict]) -> Dict:
    total = len(original or [])
    kept = len(filtered or [])
    rejected = total - kept
    criteria = {k: v for k, v in (filters or {}).items() if v is not None}
    return {
        "totalTokens": total,
        "filteredTokens": kept,
        "rejectedTokens": rejected,
        "rejectionRate": f"{(rejected / total * 100) if total else 0:.2f}%",
        "filterCriteria": criteria,
        "filterCount": len(criteria),
        "filtersApplied": [key for key in FILTER_KEYS if key in criteria]
    }


async def filter_and_export(tokens: List[dict], filters: Optional[dict] = None,
                            sort_by: str = "volume24h", ascending: bool = False,
                            exporter: Optional[DataExporter] = None,
                            now: Optional[datetime] = None) -> List[dict]:
    """Filter, sort and add age fields. Exports the result when an exporter is given."""
    filtered = apply_filters(tokens, filters, now)
    result = format_tokens_with_age(sort_tokens(filtered, sort_by, ascending), now)
    if exporter is not None:
        await exporter.export_filtered_tokens(result)
    return result
