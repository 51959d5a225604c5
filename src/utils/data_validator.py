"""
Data validation utilities for the token analytics dashboard.
Validators raise DataValidationError; callers decide whether a failure is
fatal or only worth a warning.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TX_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")
TRADE_ID_PATTERN = re.compile(r"^[\w\-]+$")
SWAP_TYPES = ("buy", "sell", "unknown")
RECOMMENDATION_LABELS = ("Strong Buy", "Buy", "Hold", "Avoid", "Strong Avoid")


class DataValidationError(Exception):
    """Custom exception for data validation errors"""
    pass


def parse_number(value: Any, default: float = 0.0) -> float:
    """
    Parse a numeric value from an API field without ever raising.

    Args:
        value: Number, numeric string, or anything else
        default: Returned when the value is missing or not a finite number

    Returns:
        float: Parsed value or default
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(str(value).strip().replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def parse_int(value: Any, default: int = 0) -> int:
    number = parse_number(value, None)
    if number is None:
        return default
    return int(number)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, unlike the built-in round."""
    return int(math.floor(value + 0.5))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or an epoch-milliseconds value into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
        try:
            return datetime.fromtimestamp(int(value) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def validate_address(address: Any) -> bool:
    return isinstance(address, str) and bool(ADDRESS_PATTERN.match(address))


def sanitize_string(value: Any) -> str:
    """Strip characters that could break HTML or shell contexts."""
    if not isinstance(value, str):
        return ""
    return re.sub(r"[<>'\";&|`]", "", value).strip()


def validate_api_response(payload: Any) -> bool:
    """
    Validate an OKX-style response body.

    Raises:
        DataValidationError: If the body is not a dict, has a non-"0" code,
                             or carries no data field
    """
    if not isinstance(payload, dict):
        raise DataValidationError(f"Invalid response body type: {type(payload).__name__}")
    code = payload.get("code")
    if code is not None and str(code) != "0":
        raise DataValidationError(f"API returned error code {code}: {payload.get('msg', '')}")
    if "data" not in payload:
        raise DataValidationError("Missing required field: data")
    return True


def validate_token_metrics(metrics: Dict[str, Any]) -> bool:
    """
    Validate a token metrics record.

    Only a missing address is an error. Bad numeric values are logged as
    warnings so the record can still be used.
    """
    if not isinstance(metrics, dict):
        raise DataValidationError("Metrics must be a dict")
    if not metrics.get("address"):
        raise DataValidationError("Missing required field: address")

    for field in ("liquidity", "volume24h", "priceUSD", "holders"):
        if field in metrics:
            value = parse_number(metrics[field], None)
            if value is None or value < 0:
                logger.warning(f"Invalid numeric value for {field}: {metrics[field]}")

    derived = metrics.get("derived") or {}
    for field in ("swapsLastHour", "avgSwapSize", "volatility", "holderGrowthRate"):
        if field in derived:
            value = derived[field]
            if not isinstance(value, (int, float)) or isinstance(value, bool) or math.isnan(value):
                logger.warning(f"Invalid derived metric {field}: {value}")
    return True


def validate_swap(swap: Dict[str, Any]) -> bool:
    if not isinstance(swap, dict):
        raise DataValidationError("Swap must be a dict")
    for field in ("txHash", "timestamp", "token"):
        if not swap.get(field):
            raise DataValidationError(f"Missing required field: {field}")

    tx_hash = str(swap["txHash"])
    if not TX_HASH_PATTERN.match(tx_hash) and not TRADE_ID_PATTERN.match(tx_hash):
        raise DataValidationError(f"Invalid transaction hash: {tx_hash}")

    if parse_timestamp(swap["timestamp"]) is None:
        raise DataValidationError(f"Invalid timestamp: {swap['timestamp']}")

    for field in ("amount", "amountUSD", "priceUSD"):
        if field in swap:
            value = parse_number(swap[field], None)
            if value is None or value < 0:
                raise DataValidationError(f"Invalid numeric value for {field}: {swap[field]}")

    swap_type = swap.get("type")
    if swap_type and str(swap_type).lower() not in SWAP_TYPES:
        raise DataValidationError(f"Invalid swap type: {swap_type}")
    return True


def validate_recommendation(recommendation: Dict[str, Any]) -> bool:
    if not isinstance(recommendation, dict):
        raise DataValidationError("Recommendation must be a dict")
    for field in ("symbol", "score", "recommendation"):
        if recommendation.get(field) is None:
            raise DataValidationError(f"Missing required field: {field}")

    score = recommendation["score"]
    if not isinstance(score, (int, float)) or isinstance(score, bool) or not 0 <= score <= 100:
        raise DataValidationError(f"Score out of range: {score}")
    if recommendation["recommendation"] not in RECOMMENDATION_LABELS:
        raise DataValidationError(f"Unknown recommendation label: {recommendation['recommendation']}")
    if "reasons" in recommendation and not isinstance(recommendation["reasons"], list):
        raise DataValidationError("Reasons must be a list")
    return True
