import json

import pandas as pd
import pytest

from src.exporters.exporter import DataExporter


@pytest.fixture
def new_tokens():
    return [
        {"symbol": "PEPE", "name": "Pepe", "address": "0x" + "01" * 20, "decimals": "18",
         "chainId": "66", "source": "synthetic"},
        {"symbol": "DOGE", "name": "Doge", "address": "0x" + "02" * 20, "source": "live"},
    ]


@pytest.mark.asyncio
async def test_export_to_json(exporter, tmp_path, new_tokens):
    path = tmp_path / "nested" / "tokens.json"
    assert await exporter.export_to_json(new_tokens, path) is True
    assert json.loads(path.read_text()) == new_tokens


def test_export_to_csv_uses_titles_and_blanks(exporter, tmp_path, new_tokens):
    path = tmp_path / "tokens.csv"
    header = [("symbol", "Symbol"), ("decimals", "Decimals"), ("source", "Source")]
    assert exporter.export_to_csv(new_tokens, header, path) is True

    lines = path.read_text().splitlines()
    assert lines == ["Symbol,Decimals,Source", "PEPE,18,synthetic", "DOGE,,live"]


def test_export_to_csv_empty_records(exporter, tmp_path):
    path = tmp_path / "empty.csv"
    assert exporter.export_to_csv([], [("symbol", "Symbol")], path) is True
    assert path.read_text().strip() == "Symbol"


@pytest.mark.asyncio
async def test_export_to_multiple_formats(exporter, tmp_path, new_tokens):
    result = await exporter.export_to_multiple_formats("newTokens", new_tokens)

    assert result == {"json": True, "csv": True}
    assert json.loads((tmp_path / "new_tokens.json").read_text()) == new_tokens
    df = pd.read_csv(tmp_path / "new_tokens.csv")
    assert list(df.columns) == ["Symbol", "Name", "Contract Address", "Decimals", "Chain ID", "Source"]


@pytest.mark.asyncio
async def test_unknown_export_type(exporter, tmp_path):
    assert await exporter.export_to_multiple_formats("bogus", []) == {"json": False, "csv": False}
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_token_metrics_wrapper(exporter, tmp_path):
    assert await exporter.export_token_metrics([{"symbol": "PEPE"}])
    saved = json.loads((tmp_path / "token_metrics.json").read_text())
    assert saved["metadata"]["count"] == 1
    assert saved["data"] == [{"symbol": "PEPE"}]


@pytest.mark.asyncio
async def test_recommendations_csv_joins_reasons(exporter, tmp_path):
    recs = [{"symbol": "PEPE", "name": "Pepe", "score": 70, "recommendation": "Buy",
             "reasons": ["Strong holder growth rate", "Good liquidity ($50000)"]}]
    await exporter.export_recommendations(recs)

    df = pd.read_csv(tmp_path / "swap_recommendations.csv")
    assert df.loc[0, "Reasons"] == "Strong holder growth rate; Good liquidity ($50000)"
    assert json.loads((tmp_path / "swap_recommendations.json").read_text())[0]["reasons"] == recs[0]["reasons"]


@pytest.mark.asyncio
async def test_export_dashboard_data(exporter, tmp_path, new_tokens):
    dashboard = {
        "newTokens": new_tokens,
        "trendingMemes": [{"symbol": "PEPEOKC"}],
        "comparisonResults": [],
        "topToken": {"symbol": "PEPE"},
        "stats": {"totalNewTokens": 2}
    }
    result = await exporter.export_dashboard_data(dashboard)

    assert result["json"] and result["csv"] and result["summary"]
    assert set(result["parts"]) == {"newTokens", "trendingMemes", "comparisonResults"}

    summary = json.loads((tmp_path / "dashboard_summary.json").read_text())
    assert summary["counts"] == {"newTokens": 2, "trendingMemes": 1, "comparisonResults": 0}
    assert summary["dataTypes"] == ["newTokens", "trendingMemes", "comparisonResults"]
    assert (tmp_path / "compare_tokens.csv").exists()


@pytest.mark.asyncio
async def test_write_failure_returns_false(tmp_path, new_tokens):
    blocked = tmp_path / "blocked"
    blocked.mkdir()
    exporter = DataExporter(tmp_path)

    assert await exporter.export_to_json(new_tokens, blocked) is False
    assert exporter.export_to_csv(new_tokens, [("symbol", "Symbol")], blocked) is False
