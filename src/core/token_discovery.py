import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import aiofiles

from config.paths import NEW_TOKENS_FILE, TOKEN_LIST_FILE
from config.settings import MEME_KEYWORDS
from src.core.models import Token
from utils.api_client import OKXClient, SYNTHETIC

logger = logging.getLogger(__name__)


def is_meme_token(token: dict, keywords: Optional[Iterable[str]] = None) -> bool:
    """Check whether a token's name or symbol contains a meme keyword."""
    if not token or not (token.get("name") or token.get("symbol")):
        return False
    name = str(token.get("name") or "").lower()
    symbol = str(token.get("symbol") or "").lower()
    for keyword in (keywords if keywords is not None else MEME_KEYWORDS):
        key = keyword.lower()
        if key in name or key in symbol:
            return True
    return False


def filter_meme_tokens(tokens: List[dict], keywords: Optional[Iterable[str]] = None) -> List[dict]:
    filtered = [t for t in tokens if is_meme_token(t, keywords)]
    logger.debug(f"Filtered {len(tokens)} tokens down to {len(filtered)} meme tokens")
    return filtered


class TokenDiscovery:
    def __init__(self, client: OKXClient,
                 token_list_path: Path = TOKEN_LIST_FILE,
                 new_tokens_path: Path = NEW_TOKENS_FILE):
        self.client = client
        self.token_list_path = Path(token_list_path)
        self.new_tokens_path = Path(new_tokens_path)

    async def load_existing_tokens(self, file_path: Optional[Path] = None) -> List[dict]:
        """Load a previously saved token list. Missing or malformed files yield []."""
        path = Path(file_path or self.token_list_path)
        if not path.exists():
            logger.info(f"No existing token file found at {path}")
            return []

        try:
            async with aiofiles.open(path, 'r') as f:
                tokens = json.loads(await f.read())
        except Exception as e:
            logger.error(f"Error loading existing tokens from {path}: {str(e)}")
            return []

        if not isinstance(tokens, list):
            logger.warning(f"Token file {path} doesn't contain a list")
            return []

        logger.debug(f"Loaded {len(tokens)} existing tokens from {path}")
        return tokens

    async def save_tokens(self, tokens: List[dict], file_path: Path) -> bool:
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, 'w') as f:
                await f.write(json.dumps(tokens, indent=2))
            logger.info(f"Saved {len(tokens)} tokens to {path}")
            return True
        except Exception as e:
            logger.error(f"Error saving tokens to {path}: {str(e)}")
            return False

    async def fetch_token_list(self) -> Tuple[List[Token], str]:
        """Fetch the full token list. Returns the tokens and the data source."""
        logger.info(f"Fetching token list via {self.client.adapter.name} adapter")
        endpoint, params = self.client.adapter.token_list()
        result = await self.client.request(endpoint, "GET", params)

        if not result.ok:
            logger.error(f"Token list request failed: {result.error}")
            return [], result.source

        if result.synthetic:
            logger.warning(f"Using synthetic token list ({result.status_text})")

        tokens = self.client.adapter.parse_tokens(result.records, source=result.source)
        logger.info(f"Fetched {len(tokens)} tokens ({result.source})")
        return tokens, result.source

    async def discover_new_tokens(self) -> List[dict]:
        """
        Diff the current token list against the known list on disk.

        Tokens are keyed by lowercase address. The known list only ever grows
        (append-if-new) and the diff is written to the new tokens file, so a
        second run against unchanged data finds nothing new.
        """
        logger.info("Starting new token discovery")
        fetched, _ = await self.fetch_token_list()
        known = await self.load_existing_tokens(self.token_list_path)

        seen = {str(t.get("address", "")).lower() for t in known if t.get("address")}
        new_tokens = []
        for token in fetched:
            if not token.address or token.key in seen:
                continue
            seen.add(token.key)
            new_tokens.append(token.to_dict())

        logger.info(f"Discovered {len(new_tokens)} new tokens out of {len(fetched)} total tokens")

        if new_tokens:
            await self.save_tokens(known + new_tokens, self.token_list_path)
        await self.save_tokens(new_tokens, self.new_tokens_path)
        return new_tokens

    async def get_token_by_address(self, address: str) -> Optional[dict]:
        """Look the token up in the known list first, then ask the API."""
        if not address:
            logger.warning("get_token_by_address called with empty address")
            return None

        normalized = address.lower()
        for token in await self.load_existing_tokens(self.token_list_path):
            if str(token.get("address", "")).lower() == normalized:
                logger.debug(f"Found token for address {address}: {token.get('symbol')}")
                return token

        request = self.client.adapter.token_lookup(address)
        if request is None:
            logger.debug(f"Adapter {self.client.adapter.name} has no token lookup endpoint")
            return None

        endpoint, params = request
        result = await self.client.request(endpoint, "GET", params)
        if not result.ok:
            logger.warning(f"Token lookup failed for {address}: {result.error}")
            return None

        tokens = self.client.adapter.parse_tokens(result.records, source=result.source)
        for token in tokens:
            if token.key == normalized:
                return token.to_dict()
        if tokens and result.source != SYNTHETIC:
            return tokens[0].to_dict()

        logger.warning(f"No token data found for address {address}")
        return None
