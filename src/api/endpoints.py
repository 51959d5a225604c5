"""
Endpoint adapters for the OKX REST API.

An adapter knows which paths and query parameters to use for each logical
call (token list, ticker, trades, trending), how to turn the raw response
records into our records, and how to build a synthetic payload with the same
shape when the real API cannot be used. The client picks one adapter from the
API_ADAPTER setting:

    dex     - DEX aggregator / DEX market endpoints, keyed by contract address
    market  - exchange spot market endpoints, keyed by SYMBOL-USDT instrument
"""

import hashlib
import logging
import random
import secrets
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.settings import CHAIN_ID, MOCK_TOKEN_COUNT, QUOTE_TOKEN
from src.core.models import Swap, Token, isoformat, utc_now
from src.utils.data_validator import parse_int, parse_number, parse_timestamp

logger = logging.getLogger(__name__)

Request = Tuple[str, Dict[str, Any]]

MARKET_TICKERS = "/api/v5/market/tickers"


def pseudo_address(seed: str) -> str:
    """Stable 0x-prefixed 40 hex char address derived from a seed string."""
    return "0x" + hashlib.sha256(seed.encode("utf-8")).hexdigest()[:40]


def char_factor(identifier: str) -> float:
    """Deterministic 0.00-0.99 factor from the character sum of an identifier."""
    return (sum(ord(c) for c in (identifier or "")) % 100) / 100


def epoch_ms(hours_ago: float = 0.0) -> str:
    return str(int((utc_now() - timedelta(hours=hours_ago)).timestamp() * 1000))


def _timestamp_iso(value: Any) -> str:
    parsed = parse_timestamp(value)
    return isoformat(parsed if parsed else utc_now())


class EndpointAdapter:
    name = "base"

    def __init__(self, chain_id: str = CHAIN_ID, quote_token: str = QUOTE_TOKEN,
                 mock_token_count: int = MOCK_TOKEN_COUNT):
        self.chain_id = str(chain_id)
        self.quote_token = quote_token
        self.mock_token_count = mock_token_count

    # Request builders

    def token_list(self) -> Request:
        raise NotImplementedError

    def token_lookup(self, address: str) -> Optional[Request]:
        return None

    def ticker(self, token: dict) -> Request:
        raise NotImplementedError

    def trades(self, token: dict, limit: int = 100) -> Request:
        raise NotImplementedError

    def trending(self) -> Optional[Request]:
        return None

    def market_overview(self) -> Request:
        return MARKET_TICKERS, {"instType": "SPOT"}

    # Response parsers

    def parse_tokens(self, records: List[dict], source: str = "live") -> List[Token]:
        raise NotImplementedError

    def parse_ticker(self, records: Any, token: dict) -> Optional[dict]:
        raise NotImplementedError

    def parse_trades(self, records: List[dict], token: dict) -> List[Swap]:
        raise NotImplementedError

    def parse_trending(self, records: List[dict]) -> List[dict]:
        tokens = []
        for record in records or []:
            symbol = record.get("symbol") or record.get("tokenSymbol")
            if not symbol:
                continue
            tokens.append({
                "symbol": symbol,
                "name": record.get("name") or record.get("tokenName") or f"{symbol} Token",
                "address": record.get("address") or record.get("tokenContractAddress") or pseudo_address(symbol),
                "priceUSD": parse_number(record.get("price", record.get("priceUSD"))),
                "priceChange24h": parse_number(record.get("priceChange24h")),
                "volume24h": parse_number(record.get("volume24h")),
                "liquidity": parse_number(record.get("liquidity")),
                "holders": parse_int(record.get("holders")),
                "listingTime": _timestamp_iso(record.get("listingTime"))
            })
        return tokens

    def parse_market_tickers(self, records: List[dict]) -> List[dict]:
        tickers = []
        for record in records or []:
            inst_id = record.get("instId")
            if not inst_id:
                continue
            tickers.append({
                "symbol": inst_id,
                "change": self._change_24h(record),
                "volume": parse_number(record.get("volCcy24h"))
            })
        return tickers

    @staticmethod
    def _change_24h(record: dict) -> float:
        if record.get("chg24h") not in (None, ""):
            return parse_number(record.get("chg24h"))
        last = parse_number(record.get("last"))
        open_24h = parse_number(record.get("open24h"))
        if open_24h > 0:
            return round((last - open_24h) / open_24h * 100, 2)
        return 0.0

    @staticmethod
    def first_record(records: Any) -> Optional[dict]:
        if isinstance(records, list):
            return records[0] if records else None
        return records if isinstance(records, dict) else None

    # Synthetic payloads

    def mock_handlers(self) -> Dict[str, Callable[[dict], List[dict]]]:
        return {MARKET_TICKERS: self._mock_market_tickers}

    def mock_payload(self, endpoint: str, params: Optional[dict] = None) -> dict:
        handler = self.mock_handlers().get(endpoint)
        if handler is None:
            logger.debug(f"No mock generator for {endpoint}, returning empty data")
            data = []
        else:
            data = handler(params or {})
        return {"code": "0", "msg": "", "data": data}

    def _mock_market_tickers(self, params: dict) -> List[dict]:
        tickers = []
        for index in range(self.mock_token_count):
            inst_id = f"TOKEN{index}-{self.quote_token}"
            factor = char_factor(inst_id)
            base_price = 0.001 + factor * 0.1
            volume = 5000 + factor * 50000
            last = base_price * (0.8 + factor * 0.4)
            tickers.append({
                "instType": "SPOT",
                "instId": inst_id,
                "last": f"{last:.8f}",
                "open24h": f"{base_price * (0.9 + factor * 0.2):.8f}",
                "high24h": f"{base_price * (1 + factor * 0.2):.8f}",
                "low24h": f"{base_price * (1 - factor * 0.2):.8f}",
                "vol24h": f"{volume * (0.5 + factor):.2f}",
                "volCcy24h": f"{volume * base_price * (0.5 + factor):.2f}",
                "askSz": f"{volume * 0.3:.2f}",
                "ts": epoch_ms()
            })
        return tickers


class DexAdapter(EndpointAdapter):
    name = "dex"

    TOKEN_LIST = "/api/v5/dex/aggregator/all-tokens"
    TICKER = "/api/v5/dex/market/ticker"
    TRADES = "/api/v5/dex/market/trades"
    TRENDING = "/api/v5/meme-pump/trending"

    MOCK_BASE_PRICE = 0.0000123

    def token_list(self) -> Request:
        return self.TOKEN_LIST, {"chainIndex": self.chain_id}

    def token_lookup(self, address: str) -> Optional[Request]:
        return self.TOKEN_LIST, {"chainIndex": self.chain_id, "tokenAddress": address}

    def ticker(self, token: dict) -> Request:
        return self.TICKER, {"instId": token.get("address", ""), "chainId": self.chain_id}

    def trades(self, token: dict, limit: int = 100) -> Request:
        return self.TRADES, {
            "instId": token.get("address", ""),
            "limit": str(limit),
            "chainId": self.chain_id
        }

    def trending(self) -> Optional[Request]:
        return self.TRENDING, {"chainId": self.chain_id}

    def parse_tokens(self, records: List[dict], source: str = "live") -> List[Token]:
        tokens = []
        for record in records or []:
            address = record.get("tokenContractAddress")
            if not address:
                continue
            tokens.append(Token(
                address=address,
                symbol=record.get("tokenSymbol", ""),
                name=record.get("tokenName", ""),
                decimals=record.get("decimals"),
                chain_id=self.chain_id,
                logo_url=record.get("tokenLogoUrl"),
                source=source
            ))
        return tokens

    def parse_ticker(self, records: Any, token: dict) -> Optional[dict]:
        data = self.first_record(records)
        if not data:
            return None
        return {
            "address": token.get("address"),
            "symbol": token.get("symbol") or data.get("symbol", ""),
            "name": token.get("name") or data.get("name", ""),
            "priceUSD": parse_number(data.get("price_usd")),
            "priceChange1h": parse_number(data.get("price_change_1h")),
            "priceChange24h": parse_number(data.get("price_change_24h")),
            "volume24h": parse_number(data.get("volume_24h")),
            "liquidity": parse_number(data.get("liquidity")),
            "marketCap": parse_number(data.get("market_cap")),
            "totalSupply": parse_number(data.get("total_supply")),
            "holders": parse_int(data.get("holders_count")),
            "listingTime": _timestamp_iso(data.get("listing_time")),
            "lastUpdate": isoformat(utc_now())
        }

    def parse_trades(self, records: List[dict], token: dict) -> List[Swap]:
        swaps = []
        for record in records or []:
            swap_type = str(record.get("type", "unknown")).lower()
            swaps.append(Swap(
                tx_hash=record.get("tx_hash", ""),
                timestamp=_timestamp_iso(record.get("timestamp")),
                token=token.get("address", ""),
                amount=parse_number(record.get("amount")),
                amount_usd=parse_number(record.get("amount_usd")),
                price_usd=parse_number(record.get("price_usd")),
                type=swap_type if swap_type in ("buy", "sell") else "unknown",
                sender=record.get("sender_address") or "unknown"
            ))
        return swaps

    def mock_handlers(self) -> Dict[str, Callable[[dict], List[dict]]]:
        handlers = super().mock_handlers()
        handlers.update({
            self.TOKEN_LIST: self._mock_token_list,
            self.TICKER: self._mock_ticker,
            self.TRADES: self._mock_trades,
            # No synthetic trending feed; the trending chain moves on to its next source
            self.TRENDING: lambda params: []
        })
        return handlers

    def _mock_token_list(self, params: dict) -> List[dict]:
        chain = str(params.get("chainIndex", self.chain_id))
        lookup = params.get("tokenAddress")
        if lookup:
            suffix = lookup[2:6].upper() if lookup.startswith("0x") else lookup[:4].upper()
            return [{
                "tokenContractAddress": lookup,
                "tokenSymbol": f"TKN{suffix}",
                "tokenName": f"Token {suffix}",
                "decimals": "18",
                "tokenLogoUrl": f"https://static.okx.com/cdn/wallet/logo/TKN{suffix}.png"
            }]

        records = []
        for index in range(self.mock_token_count):
            symbol = f"TOKEN{index}"
            records.append({
                "tokenContractAddress": pseudo_address(f"{symbol}:{chain}"),
                "tokenSymbol": symbol,
                "tokenName": f"Token {index}",
                "decimals": "18",
                "tokenLogoUrl": f"https://static.okx.com/cdn/wallet/logo/{symbol}.png"
            })
        return records

    def _mock_ticker(self, params: dict) -> List[dict]:
        factor = char_factor(params.get("instId", ""))
        volume = 8000 + factor * 12000
        return [{
            "price_usd": f"{self.MOCK_BASE_PRICE * (0.8 + factor * 0.4):.10f}",
            "price_change_1h": f"{(factor - 0.5) * 10:.2f}",
            "price_change_24h": f"{(factor - 0.5) * 40:.2f}",
            "volume_24h": f"{volume:.2f}",
            "liquidity": f"{10000 + factor * 15000:.2f}",
            "market_cap": f"{volume * 10 * (1 + factor):.2f}",
            "holders_count": str(int(50 + factor * 300)),
            "total_supply": f"{1000000 * (1 + factor * 10):.0f}",
            "listing_time": epoch_ms(hours_ago=1 + factor * 23)
        }]

    def _mock_trades(self, params: dict) -> List[dict]:
        limit = min(parse_int(params.get("limit"), 20) or 20, 20)
        trades = []
        for index in range(limit):
            price = self.MOCK_BASE_PRICE * random.uniform(0.8, 1.2)
            amount = random.uniform(100, 1000)
            trades.append({
                "tx_hash": "0x" + secrets.token_hex(32),
                "timestamp": epoch_ms(hours_ago=index * 3 / 60),  # 3 minutes apart
                "amount": f"{amount:.2f}",
                "amount_usd": f"{amount * price:.8f}",
                "price_usd": f"{price:.10f}",
                "type": random.choice(["buy", "sell"]),
                "sender_address": pseudo_address(f"trader-{index}")
            })
        return trades


class MarketAdapter(EndpointAdapter):
    name = "market"

    TOKEN_LIST = MARKET_TICKERS
    TICKER = "/api/v5/market/ticker"
    TRADES = "/api/v5/market/trades"
    MAX_TRADES = 100

    def instrument_id(self, token: Optional[dict]) -> str:
        """Map a token to its spot instrument, e.g. PEPE -> PEPE-USDT."""
        if not token:
            return f"BTC-{self.quote_token}"
        symbol = token.get("symbol") or ""
        if "-" in symbol:
            return symbol
        if symbol:
            return f"{symbol}-{self.quote_token}"
        if token.get("address"):
            return f"TOKEN-{self.quote_token}"
        return f"BTC-{self.quote_token}"

    def token_list(self) -> Request:
        return self.TOKEN_LIST, {"instType": "SPOT"}

    def ticker(self, token: dict) -> Request:
        return self.TICKER, {"instId": self.instrument_id(token)}

    def trades(self, token: dict, limit: int = 100) -> Request:
        return self.TRADES, {
            "instId": self.instrument_id(token),
            "limit": str(min(limit, self.MAX_TRADES))
        }

    def parse_tokens(self, records: List[dict], source: str = "live") -> List[Token]:
        tokens = []
        suffix = f"-{self.quote_token}"
        for record in records or []:
            inst_id = record.get("instId", "")
            if not inst_id.endswith(suffix):
                continue
            tokens.append(Token(
                address=pseudo_address(inst_id),
                symbol=inst_id.split("-")[0],
                name=inst_id,
                chain_id=self.chain_id,
                source=source
            ))
        return tokens

    def parse_ticker(self, records: Any, token: dict) -> Optional[dict]:
        data = self.first_record(records)
        if not data:
            return None
        inst_id = data.get("instId") or self.instrument_id(token)
        return {
            "address": token.get("address") or inst_id,
            "symbol": token.get("symbol") or inst_id.split("-")[0],
            "name": token.get("name") or inst_id,
            "priceUSD": parse_number(data.get("last")),
            "priceChange1h": parse_number(data.get("chg1h")),
            "priceChange24h": self._change_24h(data),
            "volume24h": parse_number(data.get("vol24h")),
            "volumeUSD24h": parse_number(data.get("volCcy24h")),
            "high24h": parse_number(data.get("high24h")),
            "low24h": parse_number(data.get("low24h")),
            "open24h": parse_number(data.get("open24h")),
            # Ask size stands in for liquidity on spot markets
            "liquidity": parse_number(data.get("askSz")),
            "marketCap": 0.0,
            "totalSupply": 0.0,
            "holders": 0,
            "listingTime": _timestamp_iso(data.get("ts")),
            "lastUpdate": isoformat(utc_now())
        }

    def parse_trades(self, records: List[dict], token: dict) -> List[Swap]:
        inst_id = self.instrument_id(token)
        swaps = []
        for index, record in enumerate(records or []):
            size = parse_number(record.get("sz"))
            price = parse_number(record.get("px"))
            swaps.append(Swap(
                tx_hash=record.get("tradeId") or f"trade-{index}",
                timestamp=_timestamp_iso(record.get("ts")),
                token=inst_id,
                amount=size,
                amount_usd=size * price,
                price_usd=price,
                type="buy" if record.get("side") == "buy" else "sell",
                sender=record.get("tradeId") or "unknown"
            ))
        return swaps

    def mock_handlers(self) -> Dict[str, Callable[[dict], List[dict]]]:
        handlers = super().mock_handlers()
        handlers.update({
            self.TICKER: self._mock_ticker,
            self.TRADES: self._mock_trades
        })
        return handlers

    def _mock_ticker(self, params: dict) -> List[dict]:
        inst_id = params.get("instId", f"TOKEN-{self.quote_token}")
        factor = char_factor(inst_id)
        base_price = 0.001 + factor * 0.1
        volume = 5000 + factor * 50000
        return [{
            "instType": "SPOT",
            "instId": inst_id,
            "last": f"{base_price * (0.8 + factor * 0.4):.8f}",
            "chg24h": f"{(factor - 0.5) * 40:.2f}",
            "chg1h": f"{(factor - 0.5) * 10:.2f}",
            "vol24h": f"{volume * (0.5 + factor):.2f}",
            "volCcy24h": f"{volume * base_price * (0.5 + factor):.2f}",
            "high24h": f"{base_price * (1 + factor * 0.2):.8f}",
            "low24h": f"{base_price * (1 - factor * 0.2):.8f}",
            "open24h": f"{base_price * (0.9 + factor * 0.2):.8f}",
            "askSz": f"{volume * 0.3:.2f}",
            "ts": epoch_ms(hours_ago=factor * 7 * 24)
        }]

    def _mock_trades(self, params: dict) -> List[dict]:
        base_price = 0.001 + random.random() * 0.01
        trades = []
        for index in range(20):
            price = base_price * random.uniform(0.85, 1.15)
            trades.append({
                "instId": params.get("instId", ""),
                "tradeId": f"trade-{secrets.token_hex(4)}-{index}",
                "px": f"{price:.8f}",
                "sz": f"{random.uniform(50, 550):.2f}",
                "side": "buy" if random.random() > 0.4 else "sell",
                "ts": epoch_ms(hours_ago=index * 15 / 60)  # 15 minutes apart
            })
        return trades


ADAPTERS = {
    DexAdapter.name: DexAdapter,
    MarketAdapter.name: MarketAdapter
}


def get_adapter(name: str, **kwargs) -> EndpointAdapter:
    """Instantiate the adapter registered under `name` ("dex" or "market")."""
    try:
        adapter_cls = ADAPTERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown API adapter '{name}'. Expected one of: {', '.join(ADAPTERS)}")
    return adapter_cls(**kwargs)
