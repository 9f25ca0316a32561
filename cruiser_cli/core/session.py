# cruiser_cli/core/session.py
import json
from pathlib import Path
from typing import Optional

from .config import APP_DIR, SESSION_FILE, IMPERSONATION_FILE


def _write(path: Path, data: dict) -> None:
    APP_DIR.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    path.chmod(0o600)


def _read(path: Path, key: str) -> Optional[str]:
    """
    Returns None if the file does not exist or cannot be parsed.
    """
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None
    return data.get(key) if isinstance(data, dict) else None


def save_token(access_token: str, refresh_token: Optional[str] = None) -> None:
    _write(SESSION_FILE, {"access_token": access_token, "refresh_token": refresh_token})


def load_token() -> Optional[str]:
    return _read(SESSION_FILE, "access_token")


def load_refresh_token() -> Optional[str]:
    return _read(SESSION_FILE, "refresh_token")


def save_impersonation_token(token: str, target_user_id: str) -> None:
    _write(IMPERSONATION_FILE, {"impersonation_token": token, "target_user_id": target_user_id})


def load_impersonation_token() -> Optional[str]:
    return _read(IMPERSONATION_FILE, "impersonation_token")


def clear_impersonation_token() -> None:
    if IMPERSONATION_FILE.exists():
        IMPERSONATION_FILE.unlink()


def clear_token() -> None:
    """
    Ends the local session, impersonation included.
    """
    if SESSION_FILE.exists():
        SESSION_FILE.unlink()
    clear_impersonation_token()


def is_logged_in() -> bool:
    return load_token() is not None
