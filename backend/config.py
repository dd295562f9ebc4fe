import os

# BetterStack Logging Configuration
# Leave the token empty to log locally only
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN", "")
BETTERSTACK_INGESTING_HOST = os.getenv("BETTERSTACK_INGESTING_HOST", "")

# Browser settings
HEADLESS = os.getenv("AUTOAPPLY_HEADLESS", "false").lower() in ("1", "true", "yes")
BROWSER_AVG_DELAY = float(os.getenv("AUTOAPPLY_BROWSER_SPEED", "1.0"))

# Port lifecycle (seconds)
KEEPALIVE_INTERVAL = 25
HEALTH_CHECK_INTERVAL = 60
STATE_VERIFICATION_INTERVAL = 30
MAX_RECONNECT_ATTEMPTS = 3
RECONNECT_DELAY = 5

# Application timing (seconds)
STUCK_APPLICATION_TIMEOUT = 180
HEALTH_CHECK_STUCK_THRESHOLD = 5 * 60
APPLICATION_TIMEOUT = 5 * 60
ZIPRECRUITER_APPLICATION_TIMEOUT = 8 * 60
SEARCH_NEXT_DELAY = 2.5
DUPLICATE_RETRY_DELAY = 1
ERROR_RETRY_DELAY = 3
SEARCH_RETRY_DELAY = 5
LOAD_MORE_RETRY_DELAY = 3

# Background handler
MAX_ERRORS_PER_SESSION = 5
ERROR_BACKOFF_STEP_MS = 3000
ERROR_BACKOFF_MAX_MS = 15000
STALE_PORT_TIMEOUT = 120
STALE_PORT_CHECK_INTERVAL = 60
DUPLICATE_MESSAGE_WINDOW = 1.0

# Human-like delays in milliseconds (min, max)
DELAYS = {
    "BETWEEN_APPLICATIONS": (3000, 8000),
    "BETWEEN_PAGES": (2000, 5000),
    "FORM_FILLING": (500, 1500),
    "PAGE_LOAD": (2000, 10000),
}

# Search defaults
DEFAULT_SEARCH_LIMIT = 10
DEFAULT_JOB_POSITION = "software engineer"

# HTTP timeouts (seconds)
AI_REQUEST_TIMEOUT = 10
API_REQUEST_TIMEOUT = 30
FILE_DOWNLOAD_TIMEOUT = 60
