"""
JSON and CSV export of dashboard data.

JSON goes through aiofiles, CSV through pandas. Every export returns a
boolean (or a dict of booleans) and logs failures instead of raising.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiofiles
import pandas as pd

from config.paths import (
    DASHBOARD_SUMMARY_FILE, DATA_DIR, FILTERED_TOKENS_FILE, NEW_TOKENS_FILE,
    RECOMMENDATIONS_FILE, TOKEN_COMPARISON_FILE, TOKEN_METRICS_FILE, TRENDING_MEMES_FILE
)
from config.settings import APP_VERSION
from src.core.models import isoformat, utc_now

logger = logging.getLogger(__name__)

Header = Sequence[Tuple[str, str]]

NEW_TOKENS_HEADER = [
    ("symbol", "Symbol"),
    ("name", "Name"),
    ("address", "Contract Address"),
    ("decimals", "Decimals"),
    ("chainId", "Chain ID"),
    ("source", "Source")
]

TRENDING_HEADER = [
    ("symbol", "Symbol"),
    ("name", "Name"),
    ("address", "Contract Address"),
    ("priceUSD", "Price (USD)"),
    ("priceChange24h", "Price Change 24h (%)"),
    ("volume24h", "Volume 24h (USD)"),
    ("liquidity", "Liquidity (USD)"),
    ("holders", "Holders"),
    ("listingTime", "Listing Time")
]

METRICS_HEADER = [
    ("symbol", "Symbol"),
    ("name", "Name"),
    ("address", "Contract Address"),
    ("priceUSD", "Price (USD)"),
    ("priceChange24h", "Price Change 24h (%)"),
    ("volume24h", "Volume 24h (USD)"),
    ("liquidity", "Liquidity (USD)"),
    ("holders", "Holders"),
    ("listingTime", "Listing Time"),
    ("source", "Source")
]

COMPARISON_HEADER = [
    ("symbol", "Symbol"),
    ("name", "Name"),
    ("volume24h", "Volume 24h (USD)"),
    ("liquidity", "Liquidity (USD)"),
    ("priceUSD", "Price (USD)"),
    ("priceChange24h", "Price Change 24h (%)"),
    ("holders", "Holders"),
    ("swapsLastHour", "Swaps Last Hour"),
    ("volatility", "Volatility (%)"),
    ("holderGrowthRate", "Holder Growth Rate (per hour)"),
    ("score", "Overall Score")
]

FILTERED_HEADER = [
    ("symbol", "Symbol"),
    ("name", "Name"),
    ("address", "Contract Address"),
    ("priceUSD", "Price (USD)"),
    ("volume24h", "Volume 24h (USD)"),
    ("liquidity", "Liquidity (USD)"),
    ("holders", "Holders"),
    ("ageDisplay", "Age")
]

RECOMMENDATIONS_HEADER = [
    ("symbol", "Symbol"),
    ("name", "Name"),
    ("score", "Score"),
    ("recommendation", "Recommendation"),
    ("reasons", "Reasons")
]

# type -> (file stem, CSV header)
EXPORT_TYPES: Dict[str, Tuple[str, Header]] = {
    "newTokens": (NEW_TOKENS_FILE.stem, NEW_TOKENS_HEADER),
    "trendingMemes": (TRENDING_MEMES_FILE.stem, TRENDING_HEADER),
    "tokenMetrics": (TOKEN_METRICS_FILE.stem, METRICS_HEADER),
    "comparisonResults": (TOKEN_COMPARISON_FILE.stem, COMPARISON_HEADER),
    "filteredTokens": (FILTERED_TOKENS_FILE.stem, FILTERED_HEADER),
    "recommendations": (RECOMMENDATIONS_FILE.stem, RECOMMENDATIONS_HEADER)
}

DASHBOARD_SECTIONS = ("newTokens", "trendingMemes", "tokenMetrics", "comparisonResults", "recommendations")


def _csv_rows(data_type: str, records: List[dict]) -> List[dict]:
    if data_type != "recommendations":
        return records
    rows = []
    for record in records:
        row = dict(record)
        row["reasons"] = "; ".join(record.get("reasons") or [])
        rows.append(row)
    return rows


class DataExporter:
    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir or DATA_DIR)

    def path_for(self, data_type: str, suffix: str) -> Path:
        stem, _ = EXPORT_TYPES[data_type]
        return self.output_dir / f"{stem}{suffix}"

    @property
    def summary_path(self) -> Path:
        return self.output_dir / DASHBOARD_SUMMARY_FILE.name

    async def export_to_json(self, data: Any, path: Path) -> bool:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, 'w') as f:
                await f.write(json.dumps(data, indent=2, default=str))
            logger.info(f"Exported JSON to {path}")
            return True
        except Exception as e:
            logger.error(f"Error exporting JSON to {path}: {str(e)}")
            return False

    def export_to_csv(self, records: List[dict], header: Header, path: Path) -> bool:
        """
        Write records as CSV with the given (field, title) columns.
        Fields missing from a record are left empty.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fields = [field for field, _ in header]
            df = pd.DataFrame(list(records or []), columns=fields)
            df = df.rename(columns=dict(header))
            df.to_csv(path, index=False)
            logger.info(f"Exported {len(df)} rows to {path}")
            return True
        except Exception as e:
            logger.error(f"Error exporting CSV to {path}: {str(e)}")
            return False

    async def export_trending_memes(self, tokens: List[dict]) -> Dict[str, bool]:
        return await self.export_to_multiple_formats("trendingMemes", tokens)

    async def export_token_metrics(self, metrics: List[dict]) -> bool:
        document = {
            "metadata": {
                "timestamp": isoformat(utc_now()),
                "count": len(metrics),
                "version": APP_VERSION
            },
            "data": metrics
        }
        return await self.export_to_json(document, self.path_for("tokenMetrics", ".json"))

    async def export_comparison_results(self, rows: List[dict]) -> Dict[str, bool]:
        return await self.export_to_multiple_formats("comparisonResults", rows)

    async def export_filtered_tokens(self, tokens: List[dict]) -> Dict[str, bool]:
        return await self.export_to_multiple_formats("filteredTokens", tokens)

    async def export_recommendations(self, recommendations: List[dict]) -> Dict[str, bool]:
        return await self.export_to_multiple_formats("recommendations", recommendations)

    async def export_to_multiple_formats(self, data_type: str, data: List[dict]) -> Dict[str, bool]:
        """Export one data type as both JSON and CSV."""
        if data_type not in EXPORT_TYPES:
            logger.error(f"Unknown export type: {data_type}")
            return {"json": False, "csv": False}

        records = data if isinstance(data, list) else []
        _, header = EXPORT_TYPES[data_type]
        if data_type == "tokenMetrics":
            json_ok = await self.export_token_metrics(records)
        else:
            json_ok = await self.export_to_json(records, self.path_for(data_type, ".json"))
        csv_ok = self.export_to_csv(_csv_rows(data_type, records), header, self.path_for(data_type, ".csv"))
        return {"json": json_ok, "csv": csv_ok}

    async def export_dashboard_data(self, dashboard: dict) -> Dict[str, Any]:
        """
        Export every list section of a dashboard payload plus a summary file.

        Returns:
            dict: {json, csv, summary, parts} where json/csv are true only when
                  every part succeeded in that format
        """
        parts = {}
        counts = {}
        for section in DASHBOARD_SECTIONS:
            records = dashboard.get(section) if dashboard else None
            if not isinstance(records, list):
                continue
            parts[section] = await self.export_to_multiple_formats(section, records)
            counts[section] = len(records)

        summary = {
            "exportTime": isoformat(utc_now()),
            "dataTypes": list(parts.keys()),
            "counts": counts
        }
        summary_ok = await self.export_to_json(summary, self.summary_path)

        return {
            "json": summary_ok and all(result["json"] for result in parts.values()),
            "csv": all(result["csv"] for result in parts.values()),
            "summary": summary_ok,
            "parts": parts
        }
