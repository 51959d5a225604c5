import pandas as pd
import pytest

from src.analysis.token_filter import (
    apply_filters,
    filter_and_export,
    format_age,
    format_tokens_with_age,
    get_filter_summary,
    sort_tokens
)

from conftest import hours_before


@pytest.fixture
def tokens():
    return [
        {"symbol": "PEPE", "name": "Pepe", "volume24h": 20000, "liquidity": 8000, "holders": 300,
         "listingTime": hours_before(5)},
        {"symbol": "USDX", "name": "Stable", "volume24h": "1500", "liquidity": 90000, "holders": 40,
         "listingTime": hours_before(30)},
        {"symbol": "DOGEK", "name": "Doge King", "volume24h": 8000, "liquidity": 2000, "holders": 120,
         "listingTime": hours_before(51)},
        {"symbol": "NOAGE", "name": "Mystery", "volume24h": None, "liquidity": 500, "holders": 10},
    ]


def test_empty_filters_return_input(tokens):
    assert apply_filters(tokens, {}) is tokens
    assert apply_filters(tokens, None) is tokens


def test_min_volume(tokens, now):
    result = apply_filters(tokens, {"minVolume": 5000}, now)
    assert [t["symbol"] for t in result] == ["PEPE", "DOGEK"]


def test_max_age_drops_tokens_without_listing_time(tokens, now):
    result = apply_filters(tokens, {"maxAge": 24}, now)
    assert [t["symbol"] for t in result] == ["PEPE"]


def test_filters_combine(tokens, now):
    result = apply_filters(tokens, {"maxAge": 72, "minHolders": 100, "maxLiquidity": 5000}, now)
    assert [t["symbol"] for t in result] == ["DOGEK"]


def test_meme_only(tokens, now):
    result = apply_filters(tokens, {"memeOnly": True}, now)
    assert [t["symbol"] for t in result] == ["PEPE", "DOGEK"]


def test_sort_numeric_strings_and_missing_last(tokens):
    descending = sort_tokens(tokens, "volume24h")
    assert [t["symbol"] for t in descending] == ["PEPE", "DOGEK", "USDX", "NOAGE"]

    ascending = sort_tokens(tokens, "volume24h", ascending=True)
    assert [t["symbol"] for t in ascending] == ["USDX", "DOGEK", "PEPE", "NOAGE"]


def test_sort_by_text_field(tokens):
    result = sort_tokens(tokens, "symbol", ascending=True)
    assert [t["symbol"] for t in result] == ["DOGEK", "NOAGE", "PEPE", "USDX"]


@pytest.mark.parametrize("hours,expected", [
    (0, "0h"),
    (5, "5h"),
    (23, "23h"),
    (48, "2d"),
    (51, "2d 3h"),
])
def test_format_age(hours, expected):
    assert format_age(hours) == expected


def test_format_tokens_with_age(tokens, now):
    result = format_tokens_with_age(tokens, now)

    assert [t["ageDisplay"] for t in result] == ["5h", "1d 6h", "2d 3h", "Unknown"]
    assert result[3]["ageHours"] == 0
    assert "ageDisplay" not in tokens[0]


def test_filter_summary(tokens, now):
    filters = {"maxAge": 24, "minVolume": None, "memeOnly": True}
    summary = get_filter_summary(tokens, apply_filters(tokens, filters, now), filters)

    assert summary["totalTokens"] == 4
    assert summary["filteredTokens"] == 1
    assert summary["rejectedTokens"] == 3
    assert summary["rejectionRate"] == "75.00%"
    assert summary["filterCriteria"] == {"maxAge": 24, "memeOnly": True}
    assert summary["filterCount"] == 2
    assert summary["filtersApplied"] == ["maxAge", "memeOnly"]


def test_filter_summary_empty():
    assert get_filter_summary([], [], {})["rejectionRate"] == "0.00%"


@pytest.mark.asyncio
async def test_filter_and_export(tokens, now, exporter, tmp_path):
    result = await filter_and_export(tokens, {"minHolders": 100}, "holders", ascending=True,
                                     exporter=exporter, now=now)

    assert [t["symbol"] for t in result] == ["DOGEK", "PEPE"]
    df = pd.read_csv(tmp_path / "filtered_tokens.csv")
    assert list(df["Symbol"]) == ["DOGEK", "PEPE"]
    assert list(df["Age"]) == ["2d 3h", "5h"]
    assert (tmp_path / "filtered_tokens.json").exists()
