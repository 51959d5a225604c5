import json

import pytest
from click.testing import CliRunner

import cli
from src.api.endpoints import DexAdapter
from src.core.dashboard import DashboardService
from utils.api_client import OKXClient


@pytest.fixture
def runner(tmp_path, monkeypatch):
    logged = []

    def offline_service():
        client = OKXClient(adapter=DexAdapter(), use_real_api=False, enable_rate_limiting=False)
        return DashboardService(client=client, data_dir=tmp_path, page_url=None, item_delay=0)

    monkeypatch.setattr(cli, "DashboardService", offline_service)
    monkeypatch.setattr(cli, "CLI_LOG", tmp_path / "cli.log")
    monkeypatch.setattr(cli, "setup_logger", lambda **kwargs: logged.append(kwargs))
    return CliRunner()


def test_discover(runner):
    result = runner.invoke(cli.cli, ["discover"])
    assert result.exit_code == 0
    assert "20 tokens (synthetic)" in result.output
    assert "TOKEN0" in result.output


def test_discover_json(runner):
    result = runner.invoke(cli.cli, ["discover", "--json"])
    assert result.exit_code == 0
    assert len(json.loads(result.output)) == 20


def test_trending(runner):
    result = runner.invoke(cli.cli, ["trending"])
    assert result.exit_code == 0
    assert "5 tokens (synthetic)" in result.output
    assert "trend=" in result.output


def test_metrics(runner):
    result = runner.invoke(cli.cli, ["metrics", "0x" + "ab" * 20])
    assert result.exit_code == 0
    assert "Source: synthetic" in result.output
    assert '"derived"' in result.output


def test_compare_requires_addresses(runner):
    result = runner.invoke(cli.cli, ["compare", " , "])
    assert result.exit_code == 1
    assert "No token addresses given" in result.output


def test_compare(runner):
    addresses = ",".join(["0x" + "01" * 20, "0x" + "02" * 20])
    result = runner.invoke(cli.cli, ["compare", addresses])
    assert result.exit_code == 0
    assert "# Token Comparison Report" in result.output


def test_filter(runner):
    result = runner.invoke(cli.cli, ["filter", "--meme-only", "--sort-by", "holders"])
    assert result.exit_code == 0
    assert "5 tokens (synthetic)" in result.output
    assert "Rejected 20/25 (80.00%) with filters: memeOnly" in result.output


def test_export_rejects_unknown_type(runner):
    result = runner.invoke(cli.cli, ["export", "everything"])
    assert result.exit_code != 0


def test_export_new_tokens(runner, tmp_path):
    result = runner.invoke(cli.cli, ["export", "new-tokens", "--format", "csv"])
    assert result.exit_code == 0
    assert result.output.strip() == "true"
    assert (tmp_path / "new_tokens.csv").exists()


def test_overview(runner):
    result = runner.invoke(cli.cli, ["overview"])
    assert result.exit_code == 0
    assert "Pairs: 20" in result.output
    assert "Top gainers:" in result.output
