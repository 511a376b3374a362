import os
from pathlib import Path

# Base directory for runtime data; ETHICSGATE_HOME overrides the default
HOME_ENV = "ETHICSGATE_HOME"
BASE_DIR = Path(os.environ.get(HOME_ENV) or Path.cwd() / ".ethicsgate").resolve()

# Storage locations
DATA_DIR = BASE_DIR / "data"
LOCK_DIR = BASE_DIR / "locks"
DB_FILE = BASE_DIR / "ethicsgate.db"

# Auth / audit
AUDIT_LOG_FILE = BASE_DIR / "audit.log"
API_TOKEN_ENV = "ETHICSGATE_API_TOKEN"
API_TOKEN_FILE = BASE_DIR / "api_tokens.txt"
ACTOR_ENV = "ETHICSGATE_USER"

# Logging
LOG_LEVEL_ENV = "ETHICSGATE_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# Field constraints
TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 200
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 50
SLUG_PATTERN = r"^[a-z0-9-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
