"""
config.py — reads all settings from settings.yaml and exposes them
as the constants that the rest of the application uses.

You should NOT need to edit this file.
Edit settings.yaml instead (or set TENDERIQ_API_URL / TENDERIQ_TOKEN).
"""

import os

import yaml

# ── Load settings.yaml ────────────────────────────────────────────────────────

_HERE = os.path.dirname(os.path.abspath(__file__))
_SETTINGS_FILE = os.path.join(_HERE, "settings.yaml")

if os.path.exists(_SETTINGS_FILE):
    with open(_SETTINGS_FILE, encoding="utf-8") as _f:
        _s = yaml.safe_load(_f) or {}
else:
    _s = {}

_api   = _s.get("api", {})
_cache = _s.get("cache", {})

# ── Backend ───────────────────────────────────────────────────────────────────

API_BASE_URL = os.environ.get(
    "TENDERIQ_API_URL", _api.get("base_url", "http://localhost:8000/api/v1")
).rstrip("/")
AUTH_TOKEN   = os.environ.get("TENDERIQ_TOKEN", _api.get("token", ""))
FEED_PATH    = "/tenderiq/tenders-sse"

REQUEST_TIMEOUT        = int(_api.get("request_timeout_seconds", 20))
STREAM_CONNECT_TIMEOUT = int(_api.get("connect_timeout_seconds", 10))

# ── Local snapshot cache ──────────────────────────────────────────────────────

# Bump the version segment whenever the cached schema changes.
CACHE_PREFIX = "tenderiq_cache_v7_"
CACHE_DIR    = str(_cache.get("directory", os.path.join(_HERE, ".tender_cache")))

CACHE_FRESH_MS             = int(_cache.get("fresh_minutes", 2)) * 60 * 1000
CACHE_STALE_MS             = int(_cache.get("stale_minutes", 60)) * 60 * 1000
MAX_CACHED_TENDERS         = int(_cache.get("max_tenders", 100))
CACHE_SAVE_EVERY_N_BATCHES = int(_cache.get("save_every_n_batches", 3))
CACHE_QUOTA_BYTES          = int(_cache.get("quota_bytes", 5 * 1024 * 1024))

QUICK_DATE_RANGES = ("last_2_days", "last_5_days", "last_7_days", "last_30_days")

# ── Session ───────────────────────────────────────────────────────────────────

SESSION_EXPIRED_MESSAGE = "You've been logged in for a while, login again"

# ── Output ────────────────────────────────────────────────────────────────────

OUTPUT_DIR      = str(_s.get("output_dir", "reports"))
OUTPUT_FILENAME = "tenders_{date}.xlsx"

# ── Watch mode ────────────────────────────────────────────────────────────────

WATCH_INTERVAL_MINUTES = int(_s.get("watch_every_minutes", 5))
