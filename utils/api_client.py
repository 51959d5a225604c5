"""
Centralized API client for the OKX REST API.

Every call returns an APIResult. When the real API cannot be used (disabled,
missing credentials, HTTP errors, non-"0" response codes, network failures)
the client substitutes a synthetic payload built by the endpoint adapter and
marks the result with source="synthetic", unless mock fallback is turned off,
in which case the failure is returned as ok=False.
"""

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import aiohttp

from config import api_keys
from config.settings import (
    API_ADAPTER, API_BASE_URL, CACHE_TTL, ENABLE_CACHING, ENABLE_RATE_LIMITING,
    REQUEST_TIMEOUT, USE_MOCK_ON_FAILURE, USE_REAL_API, USER_AGENT
)
from src.api.endpoints import EndpointAdapter, get_adapter
from src.core.models import isoformat, utc_now
from src.utils.data_validator import DataValidationError, validate_api_response
from utils.cache import TTLCache
from utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

LIVE = "live"
SYNTHETIC = "synthetic"


@dataclass
class APIResult:
    ok: bool
    data: Any = None
    source: str = LIVE
    status: int = 200
    status_text: str = "OK"
    error: Optional[str] = None

    @property
    def synthetic(self) -> bool:
        return self.source == SYNTHETIC

    @property
    def records(self) -> list:
        """The `data` array of an OKX response body, or [] when absent."""
        if self.ok and isinstance(self.data, dict):
            records = self.data.get("data")
            if isinstance(records, list):
                return records
            if isinstance(records, dict):
                return [records]
        return []


def build_query(params: Optional[Dict[str, Any]]) -> str:
    return urlencode({k: v for k, v in (params or {}).items() if v is not None})


def sign_request(secret_key: str, timestamp: str, method: str,
                 request_path: str, body: str = "") -> str:
    """Base64 HMAC-SHA256 over timestamp + METHOD + path(?query) + body."""
    message = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


class OKXClient:
    def __init__(self,
                 adapter: Optional[EndpointAdapter] = None,
                 base_url: str = API_BASE_URL,
                 api_key: Optional[str] = None,
                 secret_key: Optional[str] = None,
                 passphrase: Optional[str] = None,
                 use_real_api: bool = USE_REAL_API,
                 use_mock_on_failure: bool = USE_MOCK_ON_FAILURE,
                 cache: Optional[TTLCache] = None,
                 rate_limiter: Optional[RateLimiter] = None,
                 enable_caching: bool = ENABLE_CACHING,
                 enable_rate_limiting: bool = ENABLE_RATE_LIMITING,
                 timeout: float = REQUEST_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.adapter = adapter or get_adapter(API_ADAPTER)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_keys.OKX_API_KEY if api_key is None else api_key
        self.secret_key = api_keys.OKX_SECRET_KEY if secret_key is None else secret_key
        self.passphrase = api_keys.OKX_PASSPHRASE if passphrase is None else passphrase
        self.use_real_api = use_real_api
        self.use_mock_on_failure = use_mock_on_failure
        self.cache = cache if cache is not None else (TTLCache(CACHE_TTL) if enable_caching else None)
        self.rate_limiter = rate_limiter if rate_limiter is not None else (
            RateLimiter() if enable_rate_limiting else None
        )
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def has_credentials(self) -> bool:
        return api_keys.has_credentials(self.api_key, self.secret_key, self.passphrase)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    def _headers(self, method: str, request_path: str, body: str) -> Dict[str, str]:
        timestamp = isoformat(utc_now())
        return {
            "Content-Type": "application/json",
            "OK-ACCESS-KEY": self.api_key,
            "OK-ACCESS-SIGN": sign_request(self.secret_key, timestamp, method, request_path, body),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self.passphrase,
            "User-Agent": USER_AGENT
        }

    @staticmethod
    def cache_key(method: str, endpoint: str, params: Optional[dict]) -> str:
        return f"{method}:{endpoint}:{json.dumps(params or {}, sort_keys=True)}"

    def _fallback(self, endpoint: str, params: Optional[dict], status: int,
                  reason: str, error: str) -> APIResult:
        if not self.use_mock_on_failure:
            return APIResult(ok=False, source=LIVE, status=status, status_text=reason, error=error)
        return APIResult(
            ok=True,
            data=self.adapter.mock_payload(endpoint, params),
            source=SYNTHETIC,
            status=200,
            status_text=f"OK (Mock - {reason})",
            error=error
        )

    async def request(self, endpoint: str, method: str = "GET",
                      params: Optional[Dict[str, Any]] = None) -> APIResult:
        method = method.upper()
        params = params or {}

        if not self.use_real_api:
            logger.debug(f"Real API disabled, using synthetic data for {endpoint}")
            return self._fallback(endpoint, params, 503, "API Disabled", "Real API access is disabled")

        if not self.has_credentials():
            logger.warning(f"Missing API credentials, using synthetic data for {endpoint}")
            return self._fallback(endpoint, params, 503, "No Credentials", "Missing OKX API credentials")

        key = self.cache_key(method, endpoint, params)
        if method == "GET" and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for {key}")
                return APIResult(ok=True, data=cached, source=LIVE, status=200, status_text="OK (Cached)")

        if self.rate_limiter is not None:
            await self.rate_limiter.wait(endpoint)

        if method == "GET":
            query = build_query(params)
            request_path = f"{endpoint}?{query}" if query else endpoint
            body = ""
        else:
            request_path = endpoint
            body = json.dumps(params)

        url = f"{self.base_url}{request_path}"
        headers = self._headers(method, request_path, body)
        logger.debug(f"Making {method} request to {url}")

        try:
            session = self._get_session()
            async with session.request(method, url, headers=headers,
                                       data=body if body else None) as response:
                status = response.status
                if status == 401:
                    logger.error(f"Authentication failed for {endpoint}")
                    return self._fallback(endpoint, params, status, "Authentication Failed",
                                          "Authentication failed")
                if status == 404:
                    logger.error(f"Endpoint not found: {endpoint}")
                    return self._fallback(endpoint, params, status, "Endpoint Not Found",
                                          f"Endpoint not found: {endpoint}")
                if status >= 400:
                    error_text = await response.text()
                    logger.error(f"API error: {status} - {error_text[:200]}")
                    return self._fallback(endpoint, params, status, f"HTTP {status}",
                                          f"HTTP {status}: {error_text[:200]}")
                payload = await response.json(content_type=None)
        except Exception as e:
            logger.error(f"Error requesting {endpoint}: {str(e)}")
            return self._fallback(endpoint, params, 502, "Request Failed", str(e))

        try:
            validate_api_response(payload)
        except DataValidationError as e:
            code = payload.get("code") if isinstance(payload, dict) else None
            reason = f"API Error {code}" if code is not None and str(code) != "0" else "Invalid Response"
            logger.warning(f"Rejected response from {endpoint}: {str(e)}")
            return self._fallback(endpoint, params, 502, reason, str(e))

        if method == "GET" and self.cache is not None:
            self.cache.set(key, payload)
        return APIResult(ok=True, data=payload, source=LIVE, status=status, status_text="OK")
