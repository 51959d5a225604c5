#!/usr/bin/env python3
"""
Connectivity check for the OKX API.

Calls a public market endpoint, and the signed token-list endpoint when
credentials are configured, and reports status, response code and latency.
"""

import time
from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import api_keys
from config.settings import API_BASE_URL, CHAIN_ID, REQUEST_TIMEOUT, USER_AGENT
from src.core.models import isoformat, utc_now
from utils.api_client import build_query, sign_request

PUBLIC_ENDPOINT = "/api/v5/market/ticker"
PUBLIC_PARAMS = {"instId": "BTC-USDT"}

SIGNED_ENDPOINT = "/api/v5/dex/aggregator/all-tokens"

MAX_RETRIES = 2


def build_session(max_retries: int = MAX_RETRIES) -> requests.Session:
    session = requests.Session()
    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
        respect_retry_after_header=True
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json"
    })
    return session


def check_endpoint(session: requests.Session, base_url: str, endpoint: str,
                   params: Optional[dict] = None, signed: bool = False) -> Dict:
    """Call one endpoint and describe the outcome. Never raises."""
    query = build_query(params)
    request_path = f"{endpoint}?{query}" if query else endpoint
    headers = {}
    if signed:
        timestamp = isoformat(utc_now())
        headers = {
            "OK-ACCESS-KEY": api_keys.OKX_API_KEY,
            "OK-ACCESS-SIGN": sign_request(api_keys.OKX_SECRET_KEY, timestamp, "GET", request_path),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": api_keys.OKX_PASSPHRASE
        }

    result = {"endpoint": endpoint, "signed": signed, "ok": False,
              "status": None, "code": None, "latencyMs": None, "error": None}
    started = time.monotonic()
    try:
        response = session.get(f"{base_url}{request_path}", headers=headers, timeout=REQUEST_TIMEOUT)
        result["latencyMs"] = round((time.monotonic() - started) * 1000)
        result["status"] = response.status_code
        try:
            result["code"] = str(response.json().get("code"))
        except ValueError:
            result["error"] = response.text[:200]
        result["ok"] = response.ok and result["code"] == "0"
    except requests.RequestException as e:
        result["latencyMs"] = round((time.monotonic() - started) * 1000)
        result["error"] = str(e)
    return result


def run_checks(base_url: str = API_BASE_URL, session: Optional[requests.Session] = None) -> List[Dict]:
    session = session or build_session()
    results = [check_endpoint(session, base_url, PUBLIC_ENDPOINT, PUBLIC_PARAMS)]
    if api_keys.has_credentials():
        results.append(check_endpoint(session, base_url, SIGNED_ENDPOINT, {"chainIndex": CHAIN_ID}, signed=True))
    return results


def format_result(result: Dict) -> str:
    label = "signed" if result["signed"] else "public"
    mark = "OK" if result["ok"] else "FAIL"
    line = (f"[{mark}] {label} {result['endpoint']} status={result['status']} "
            f"code={result['code']} latency={result['latencyMs']}ms")
    if result["error"]:
        line += f" error={result['error']}"
    return line


if __name__ == "__main__":
    for outcome in run_checks():
        print(format_result(outcome))
    if not api_keys.has_credentials():
        print("No OKX credentials configured, signed check skipped")
