"""Runtime configuration.

Every value can be overridden with an ``EVENTS_*`` environment variable
(the CLI loads a ``.env`` file first).
"""

import os
from pathlib import Path

ROOT_DIR = Path(__file__).parent.parent

# Output locations
DATA_DIR = Path(os.environ.get("EVENTS_DATA_DIR", ROOT_DIR / "public" / "data"))
DATASET_PATH = DATA_DIR / "events.json"
RUN_OUTPUT_PATH = DATA_DIR / "events.universal.json"

# Fetcher
FETCH_TIMEOUT = float(os.environ.get("EVENTS_FETCH_TIMEOUT", "20"))
FETCH_RETRIES = int(os.environ.get("EVENTS_FETCH_RETRIES", "3"))
FETCH_BACKOFF = float(os.environ.get("EVENTS_FETCH_BACKOFF", "1.0"))  # seconds, doubled per attempt
USER_AGENT = os.environ.get(
    "EVENTS_USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.7; rv:134.0) Gecko/20100101 Firefox/134.0",
)

# Crawl budgets and politeness
MAX_PAGES_PER_SEED = int(os.environ.get("EVENTS_MAX_PAGES", "60"))
MAX_PAGES_PER_RUN = int(os.environ.get("EVENTS_MAX_RUN_PAGES", "0"))  # 0 = unbounded
CRAWL_WORKERS = int(os.environ.get("EVENTS_CRAWL_WORKERS", "4"))
PAGE_DELAY = float(os.environ.get("EVENTS_PAGE_DELAY", "0.8"))
DETAIL_DELAY = float(os.environ.get("EVENTS_DETAIL_DELAY", "0.5"))
PAGINATION_DELAY = float(os.environ.get("EVENTS_PAGINATION_DELAY", "0.3"))
DETAIL_LIMIT = int(os.environ.get("EVENTS_DETAIL_LIMIT", "50"))
PAGINATION_LIMIT = int(os.environ.get("EVENTS_PAGINATION_LIMIT", "10"))

# Consolidation
CITY_PLACEHOLDER = os.environ.get("EVENTS_CITY_PLACEHOLDER", "Chicago")
QUALITY_THRESHOLD = float(os.environ.get("EVENTS_QUALITY_THRESHOLD", "0.6"))

# Geocoding collaborator
GEOCODE_CACHE_PATH = Path(
    os.environ.get("EVENTS_GEOCODE_CACHE", ROOT_DIR / ".cache" / "geocode-cache.json")
)
VENUES_PATH = Path(os.environ.get("EVENTS_VENUES_FILE", ROOT_DIR / "data" / "venues.json"))
GEOCODER_URL = os.environ.get(
    "EVENTS_GEOCODER_URL", "https://nominatim.openstreetmap.org/search"
)
GEOCODER_USER_AGENT = os.environ.get("EVENTS_GEOCODER_USER_AGENT", "events-pipeline/0.1")
GEOCODER_CITY_SUFFIX = os.environ.get("EVENTS_GEOCODER_CITY_SUFFIX", "Chicago, IL")
GEOCODER_MIN_INTERVAL = float(os.environ.get("EVENTS_GEOCODER_MIN_INTERVAL", "1.1"))
GEOCODER_MAX_LOOKUPS = int(os.environ.get("EVENTS_GEOCODER_MAX_LOOKUPS", "80"))
