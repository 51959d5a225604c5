import json

import pytest

from src.analysis.swap_recommender import (
    SwapRecommender,
    analyze_token_for_swap,
    generate_recommendation_report,
    get_recommendation_text,
    price_action_score,
    volatility_score,
    vlr_score
)


@pytest.mark.parametrize("score,expected", [
    (82, "Strong Buy"),
    (80, "Strong Buy"),
    (79, "Buy"),
    (65, "Buy"),
    (64, "Hold"),
    (50, "Hold"),
    (49, "Avoid"),
    (35, "Avoid"),
    (34, "Strong Avoid"),
    (0, "Strong Avoid"),
])
def test_recommendation_buckets(score, expected):
    assert get_recommendation_text(score) == expected


def test_vlr_score():
    assert vlr_score(30000, 10000) == pytest.approx(99.99)
    assert vlr_score(1000000, 10000) == 100
    assert vlr_score(30000, 0) == 0


@pytest.mark.parametrize("change,expected", [
    (0, 0),
    (5, 50),
    (10, 60),
    (30, 100),
    (40, 80),
    (90, 0),
    (-4, 30),
    (-20, 0),
])
def test_price_action_score(change, expected):
    assert max(0, price_action_score(change)) == pytest.approx(expected)


@pytest.mark.parametrize("volatility,expected", [
    (0.02, 20),
    (0.1, 75),
    (0.15, 100),
    (0.25, 70),
    (0.5, 0),
])
def test_volatility_score(volatility, expected):
    assert volatility_score(volatility) == pytest.approx(expected)


def test_analyze_detailed_token(detailed_token):
    rec = analyze_token_for_swap(detailed_token)

    assert rec["symbol"] == "PEPEOKC"
    assert rec["score"] == 68
    assert rec["recommendation"] == "Buy"
    assert rec["analysis"]["volumeLiquidityRatio"] == {"value": "0.60", "score": 20, "weight": 0.25}
    assert rec["analysis"]["volatility"]["value"] == "10.00%"
    assert rec["analysis"]["holderGrowth"]["value"] == "2.00 holders/hour"
    assert rec["reasons"] == [
        "Optimal volatility for trading opportunities",
        "Strong holder growth rate",
        "Solid holder base (500 holders)",
        "Good liquidity ($50000)",
        "Low trading volume relative to liquidity",
    ]


def test_high_volume_ratio(detailed_token):
    detailed_token["liquidity"] = 10000
    rec = analyze_token_for_swap(detailed_token)

    assert rec["analysis"]["volumeLiquidityRatio"]["value"] == "3.00"
    assert rec["analysis"]["volumeLiquidityRatio"]["score"] == 100
    assert "High trading activity relative to liquidity (30000/10000)" in rec["reasons"]


def test_zero_liquidity_scores_zero(detailed_token):
    detailed_token["liquidity"] = 0
    rec = analyze_token_for_swap(detailed_token)

    assert rec["analysis"]["volumeLiquidityRatio"]["score"] == 0
    assert rec["analysis"]["liquidity"]["score"] == 0
    assert "Limited liquidity ($0)" in rec["reasons"]


def test_pump_and_dump_reason(detailed_token):
    detailed_token["priceChange24h"] = 90
    rec = analyze_token_for_swap(detailed_token)
    assert "Potential pump and dump (90% in 24h)" in rec["reasons"]


def test_falling_price_reason(detailed_token):
    detailed_token["priceChange24h"] = -10
    rec = analyze_token_for_swap(detailed_token)
    assert "Unfavorable price movement (-10% in 24h)" in rec["reasons"]


def test_excessive_volatility_reason(detailed_token):
    detailed_token["derived"]["volatility"] = 0.5
    rec = analyze_token_for_swap(detailed_token)
    assert "Excessive volatility increases risk" in rec["reasons"]


def test_missing_derived_uses_defaults(detailed_token):
    del detailed_token["derived"]
    rec = analyze_token_for_swap(detailed_token)

    assert rec["analysis"]["volatility"]["value"] == "10.00%"
    assert rec["analysis"]["holderGrowth"]["value"] == "0.50 holders/hour"
    assert rec["analysis"]["holderGrowth"]["score"] == 25


def test_unknown_names():
    rec = analyze_token_for_swap({"volume24h": 1000, "liquidity": 1000, "holders": 10})
    assert rec["symbol"] == "Unknown"
    assert rec["name"] == "Unknown Token"


def test_recommendation_report(detailed_token):
    report = generate_recommendation_report([analyze_token_for_swap(detailed_token)])

    assert "## 1. PEPEOKC (Pepe OKC) - Buy" in report
    assert "**Score: 68/100**" in report
    assert "- Strong holder growth rate" in report
    assert "- **volumeLiquidityRatio**: 0.60 (Score: 20)" in report
    assert "should not be considered financial advice" in report


def test_empty_recommendation_report():
    assert generate_recommendation_report([]) == "No recommendations available."


@pytest.mark.asyncio
async def test_generate_recommendations_sorted_and_exported(metrics_service, exporter, tmp_path, detailed_token):
    weak = dict(detailed_token, symbol="WEAK", holders=5, liquidity=1000, derived={"volatility": 0.6})
    recommender = SwapRecommender(metrics_service, exporter)
    recs = await recommender.generate_recommendations([weak, detailed_token])

    assert [r["symbol"] for r in recs] == ["PEPEOKC", "WEAK"]
    assert recs[0]["score"] >= recs[1]["score"]

    saved = json.loads((tmp_path / "swap_recommendations.json").read_text())
    assert [r["symbol"] for r in saved] == ["PEPEOKC", "WEAK"]
    csv_text = (tmp_path / "swap_recommendations.csv").read_text()
    assert csv_text.splitlines()[0] == "Symbol,Name,Score,Recommendation,Reasons"
    assert "Optimal volatility for trading opportunities; Strong holder growth rate" in csv_text
