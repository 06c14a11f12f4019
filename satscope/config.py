"""
SatScope Configuration
All settings in one place - no magic numbers scattered across files
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# ============================================================
# EARTH ENGINE
# ============================================================
GEE_PROJECT = os.getenv("GEE_PROJECT")
GEE_SERVICE_ACCOUNT_EMAIL = os.getenv("GEE_SERVICE_ACCOUNT_EMAIL")
GEE_PRIVATE_KEY = os.getenv("GEE_PRIVATE_KEY")

# ============================================================
# GEOCODING (Nominatim)
# ============================================================
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "SatScope/1.0 (Geospatial Analysis Service)")
GEOCODER_TIMEOUT_SECONDS = float(os.getenv("GEOCODER_TIMEOUT_SECONDS", "5"))
NOMINATIM_RATE_LIMIT_SECONDS = 1.1  # >1 req/sec per Nominatim ToS

# ============================================================
# GUARDRAILS
# ============================================================
MAX_TIME_RANGE_YEARS = float(os.getenv("MAX_TIME_RANGE_YEARS", "5"))
MAX_AOI_SIZE_DEGREES = float(os.getenv("MAX_AOI_SIZE_DEGREES", "10"))

# ============================================================
# CACHE
# ============================================================
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "100"))
CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", str(60 * 60)))  # 1 hour

# ============================================================
# EXECUTION
# ============================================================
BUCKET_WORKERS = int(os.getenv("BUCKET_WORKERS", "4"))
BUCKET_TIMEOUT_SECONDS = float(os.getenv("BUCKET_TIMEOUT_SECONDS", "60"))
REQUEST_DEADLINE_SECONDS = float(os.getenv("REQUEST_DEADLINE_SECONDS", "300"))
MAX_PIXELS = 1e9

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class Settings:
    """Snapshot of the process configuration, passed to factories."""
    gee_project: Optional[str] = GEE_PROJECT
    gee_service_account_email: Optional[str] = GEE_SERVICE_ACCOUNT_EMAIL
    gee_private_key: Optional[str] = GEE_PRIVATE_KEY
    nominatim_url: str = NOMINATIM_URL
    geocoder_user_agent: str = GEOCODER_USER_AGENT
    geocoder_timeout_seconds: float = GEOCODER_TIMEOUT_SECONDS
    max_time_range_years: float = MAX_TIME_RANGE_YEARS
    max_aoi_size_degrees: float = MAX_AOI_SIZE_DEGREES
    cache_max_entries: int = CACHE_MAX_ENTRIES
    cache_ttl_seconds: float = CACHE_TTL_SECONDS
    bucket_workers: int = BUCKET_WORKERS
    bucket_timeout_seconds: float = BUCKET_TIMEOUT_SECONDS
    request_deadline_seconds: float = REQUEST_DEADLINE_SECONDS
    log_level: str = LOG_LEVEL


def get_settings() -> Settings:
    """Return settings built from the current module-level values."""
    return Settings()
