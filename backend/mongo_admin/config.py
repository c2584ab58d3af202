import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load env from backend/.env.local if exists
_env_path = Path(__file__).resolve().parent.parent / ".env.local"
if _env_path.exists():
    load_dotenv(_env_path)


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime settings read from the environment."""

    def __init__(self) -> None:
        self.mongodb_uri: Optional[str] = os.getenv("MONGODB_URI") or None
        self.mongodb_database: Optional[str] = os.getenv("MONGODB_DATABASE") or None
        self.connect_retry_delay: int = _int("CONNECT_RETRY_DELAY", 5)
        self.default_page_size: int = _int("DEFAULT_PAGE_SIZE", 50)
        self.max_page_size: int = _int("MAX_PAGE_SIZE", 500)
        self.search_strategy: str = (os.getenv("SEARCH_STRATEGY") or "auto").lower()
        self.rate_limit_max: int = _int("RATE_LIMIT_MAX", 200)
        self.rate_limit_window: int = _int("RATE_LIMIT_WINDOW", 15 * 60)
        self.cors_origins: List[str] = [
            o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()
        ]
        self.static_dir: str = os.getenv("STATIC_DIR") or "public"
        self.debug: bool = _bool("DEBUG")
        self.log_level: str = (os.getenv("LOG_LEVEL") or "INFO").upper()
        self.log_file: Optional[str] = os.getenv("LOG_FILE") or None
        self.host: str = os.getenv("HOST") or "0.0.0.0"
        self.port: int = _int("PORT", 3000)


settings = Settings()
