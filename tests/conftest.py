import os
import tempfile

# Must be set before anything under cruiser is imported: settings and the
# engine are built at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ALGORITHM"] = "HS256"
os.environ["JWT_SECRET"] = "test-secret-for-the-suite-only-0123456789"
os.environ["ADMIN_EMAIL"] = "admin@cruiser.io"
os.environ["ADMIN_PASSWORD"] = "Admin-pass-123"
os.environ["PASSWORD_PEPPER"] = "test-pepper"
os.environ["POLICY_FILE"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.setdefault("CRUISER_HOME", tempfile.mkdtemp(prefix="cruiser-cli-"))
