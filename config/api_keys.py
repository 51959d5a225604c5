"""
OKX API credentials.
These are loaded from environment variables, never hardcoded.
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

OKX_API_KEY = os.getenv("OKX_API_KEY", "")
OKX_SECRET_KEY = os.getenv("OKX_SECRET_KEY", "")
OKX_PASSPHRASE = os.getenv("OKX_PASSPHRASE", "")
OKX_PROJECT_ID = os.getenv("OKX_PROJECT_ID", "")


def has_credentials(api_key=None, secret_key=None, passphrase=None) -> bool:
    """Key, secret and passphrase are all required for signed requests."""
    api_key = OKX_API_KEY if api_key is None else api_key
    secret_key = OKX_SECRET_KEY if secret_key is None else secret_key
    passphrase = OKX_PASSPHRASE if passphrase is None else passphrase
    return bool(api_key and secret_key and passphrase)
