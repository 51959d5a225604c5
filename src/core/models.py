from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Token:
    address: str
    symbol: str
    name: str
    decimals: Optional[str] = None
    chain_id: Optional[str] = None
    logo_url: Optional[str] = None
    source: str = "live"

    @property
    def key(self) -> str:
        return self.address.lower()

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "chainId": self.chain_id,
            "logoUrl": self.logo_url,
            "source": self.source
        }


@dataclass
class Swap:
    tx_hash: str
    timestamp: str
    token: str
    amount: float
    amount_usd: float
    price_usd: float
    type: str = "unknown"
    sender: str = "unknown"

    def to_dict(self) -> dict:
        return {
            "txHash": self.tx_hash,
            "timestamp": self.timestamp,
            "token": self.token,
            "amount": self.amount,
            "amountUSD": self.amount_usd,
            "priceUSD": self.price_usd,
            "type": self.type,
            "sender": self.sender
        }
