"""
Configuration file for project paths and output files
"""

import os
from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Data directory (all JSON/CSV output lands here)
DATA_DIR = Path(os.getenv("OUTPUT_DIR", str(PROJECT_ROOT / "data")))

# Log directory
LOGS_DIR = Path(os.getenv("LOGS_DIR", str(PROJECT_ROOT / "logs")))

# Static dashboard page
STATIC_DIR = PROJECT_ROOT / "dashboard" / "static"

# Create directories if they don't exist
for directory in [DATA_DIR, LOGS_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Output files
TOKEN_LIST_FILE = DATA_DIR / "tokens.json"
NEW_TOKENS_FILE = DATA_DIR / "new_tokens.json"
TRENDING_MEMES_FILE = DATA_DIR / "trending_memes.json"
TOKEN_METRICS_FILE = DATA_DIR / "token_metrics.json"
TOKEN_COMPARISON_FILE = DATA_DIR / "compare_tokens.csv"
FILTERED_TOKENS_FILE = DATA_DIR / "filtered_tokens.csv"
RECOMMENDATIONS_FILE = DATA_DIR / "swap_recommendations.json"
DASHBOARD_SUMMARY_FILE = DATA_DIR / "dashboard_summary.json"

# Log files
DASHBOARD_LOG = LOGS_DIR / "dashboard.log"
CLI_LOG = LOGS_DIR / "cli.log"
