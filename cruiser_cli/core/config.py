# cruiser_cli/core/config.py
from pathlib import Path
import os

# Backend URL
BASE_URL = os.environ.get("CRUISER_URL", "http://localhost:8000").rstrip("/")
API_PREFIX = os.environ.get("CRUISER_API_PREFIX", "/api")

# Must match the server's IMPERSONATION_HEADER
IMPERSONATION_HEADER = "X-Impersonation-Token"

TIMEOUT = 10

# Local state (tokens)
APP_DIR = Path(os.environ.get("CRUISER_HOME", Path.home() / ".cruiser"))

SESSION_FILE = APP_DIR / "session.json"
IMPERSONATION_FILE = APP_DIR / "impersonation.json"
