#!/usr/bin/env python3
"""
Command-line interface for the OKC token launch analytics dashboard.
"""

import asyncio
import json
import logging
import sys

import click

from config.paths import CLI_LOG
from config.settings import SERVER_HOST, SERVER_PORT
from src.core.dashboard import EXPORT_TYPES, DashboardService
from utils.logger import setup_logger

logger = logging.getLogger(__name__)


def run_with_service(action):
    """Run `action(service)` on a fresh dashboard service. Exits with 1 on errors."""
    async def runner():
        service = DashboardService()
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        click.echo("Interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Command failed: {str(e)}", exc_info=True)
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)


def echo_json(data):
    click.echo(json.dumps(data, indent=2, default=str))


def echo_tokens(tokens, source):
    click.echo(f"{len(tokens)} tokens ({source})")
    for token in tokens:
        line = f"  {token.get('symbol', '?'):<12} {token.get('address', '')}"
        if token.get("trendScore") is not None:
            line += f"  trend={token['trendScore']:.2f}"
        if token.get("ageDisplay"):
            line += f"  age={token['ageDisplay']}"
        click.echo(line)


@click.group()
def cli():
    """OKC Token Dashboard CLI - discover, analyze and export token launch data."""
    setup_logger(log_file=CLI_LOG)


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
def discover(as_json):
    """Discover tokens not seen in previous runs."""
    tokens, source = run_with_service(lambda s: s.get_new_tokens())
    if as_json:
        echo_json(tokens)
    else:
        echo_tokens(tokens, source)


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
def trending(as_json):
    """List trending meme coins, ranked by trend score."""
    tokens, source = run_with_service(lambda s: s.get_trending())
    if as_json:
        echo_json(tokens)
    else:
        echo_tokens(tokens, source)


@cli.command()
@click.argument('address')
def metrics(address):
    """Show detailed metrics for one token address."""
    result, source = run_with_service(lambda s: s.get_token_metrics(address))
    if not result:
        click.echo(f"No metrics found for {address}")
        sys.exit(1)
    click.echo(f"Source: {source}")
    echo_json(result)


@cli.command()
@click.argument('addresses')
def compare(addresses):
    """Compare tokens, given as comma-separated addresses."""
    tokens = [a.strip() for a in addresses.split(",") if a.strip()]
    if not tokens:
        click.echo("No token addresses given")
        sys.exit(1)
    _, report, source = run_with_service(lambda s: s.compare(tokens))
    click.echo(f"Source: {source}\n")
    click.echo(report)


@cli.command()
def recommend():
    """Recommendations for new and trending tokens."""
    _, report, source = run_with_service(lambda s: s.recommend())
    click.echo(f"Source: {source}\n")
    click.echo(report)


@cli.command(name='filter')
@click.option('--min-volume', type=float, help='Minimum 24h volume (USD)')
@click.option('--max-volume', type=float, help='Maximum 24h volume (USD)')
@click.option('--min-liquidity', type=float, help='Minimum liquidity (USD)')
@click.option('--max-liquidity', type=float, help='Maximum liquidity (USD)')
@click.option('--min-holders', type=int, help='Minimum holder count')
@click.option('--max-age', type=float, help='Maximum age in hours')
@click.option('--meme-only', is_flag=True, help='Only meme tokens')
@click.option('--sort-by', default='volume24h', show_default=True, help='Field to sort by')
@click.option('--ascending', is_flag=True, help='Sort ascending')
@click.option('--export', 'export', is_flag=True, help='Write filtered_tokens.json/csv')
def filter_command(min_volume, max_volume, min_liquidity, max_liquidity, min_holders,
                   max_age, meme_only, sort_by, ascending, export):
    """Filter new and trending tokens."""
    filters = {
        "minVolume": min_volume,
        "maxVolume": max_volume,
        "minLiquidity": min_liquidity,
        "maxLiquidity": max_liquidity,
        "minHolders": min_holders,
        "maxAge": max_age,
        "memeOnly": True if meme_only else None
    }
    filters = {k: v for k, v in filters.items() if v is not None}

    tokens, summary, source = run_with_service(
        lambda s: s.filter_tokens(filters, sort_by, ascending, export=export)
    )
    echo_tokens(tokens, source)
    click.echo(f"Rejected {summary['rejectedTokens']}/{summary['totalTokens']} "
               f"({summary['rejectionRate']}) with filters: {', '.join(summary['filtersApplied']) or 'none'}")


@cli.command()
@click.argument('export_type', type=click.Choice(EXPORT_TYPES))
@click.option('--format', 'export_format', type=click.Choice(['json', 'csv', 'all']), default='all',
              show_default=True)
def export(export_type, export_format):
    """Regenerate and export a data set to the data directory."""
    result = run_with_service(lambda s: s.export_data(export_type))
    echo_json(result if export_format == 'all' else result.get(export_format))


@cli.command()
def overview():
    """Market-wide overview: top gainers and losers."""
    data = run_with_service(lambda s: s.get_market_overview())
    click.echo(f"Pairs: {data['totalPairs']}  Volume 24h: {data['totalVolume24h']:.2f}  ({data['source']})")
    click.echo("Top gainers:")
    for ticker in data["topGainers"]:
        click.echo(f"  {ticker['symbol']:<16} {ticker['change']:+.2f}%")
    click.echo("Top losers:")
    for ticker in data["topLosers"]:
        click.echo(f"  {ticker['symbol']:<16} {ticker['change']:+.2f}%")


@cli.command()
@click.option('--host', default=SERVER_HOST, show_default=True)
@click.option('--port', default=SERVER_PORT, type=int, show_default=True)
def serve(host, port):
    """Start the REST API and dashboard page."""
    from src.server.app import run_server

    try:
        asyncio.run(run_server(host, port))
    except KeyboardInterrupt:
        click.echo("Server stopped")
    except Exception as e:
        logger.error(f"Server failed: {str(e)}", exc_info=True)
        sys.exit(1)


@cli.command()
def monitor():
    """Run the periodic discovery and metrics poller."""
    from src.main import DashboardOrchestrator

    try:
        asyncio.run(DashboardOrchestrator().run())
    except KeyboardInterrupt:
        click.echo("Poller stopped")
    except Exception as e:
        logger.error(f"Poller failed: {str(e)}", exc_info=True)
        sys.exit(1)


@cli.command(name='check-api')
def check_api():
    """Check connectivity to the OKX API."""
    from src.utils.api_check import format_result, run_checks

    results = run_checks()
    for result in results:
        click.echo(format_result(result))
    if len(results) == 1:
        click.echo("No OKX credentials configured, signed check skipped")
    if not all(r["ok"] for r in results):
        sys.exit(1)


if __name__ == '__main__':
    cli()
