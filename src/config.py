# runtime settings, read once from the environment
import os
from dataclasses import dataclass
from typing import Optional

from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass(frozen=True)
class Settings:
    """
    Settings for the storefront client.

    Fields:
      - api_url: base url of the storefront backend
      - db_path: sqlite file holding the persisted session
      - storage_namespace: prefix of the persisted keys
      - http_timeout: seconds before a request gives up
      - debug: verbose logging
    """

    api_url: str = "http://localhost:5000"
    db_path: str = "data/storefront.sqlite"
    storage_namespace: str = "ssecom"
    http_timeout: float = 15.0
    debug: bool = False


def _parse_timeout(raw: Optional[str], default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        _logger.warning(
            f"STOREFRONT_HTTP_TIMEOUT={raw!r} is not a number, using {default}s."
        )
        return default
    if value <= 0:
        _logger.warning(
            f"STOREFRONT_HTTP_TIMEOUT={raw!r} must be positive, using {default}s."
        )
        return default
    return value


def load_settings() -> Settings:
    """Build Settings from STOREFRONT_* environment variables."""
    defaults = Settings()
    return Settings(
        api_url=os.getenv("STOREFRONT_API_URL", defaults.api_url).rstrip("/"),
        db_path=os.getenv("STOREFRONT_DB_PATH", defaults.db_path),
        storage_namespace=os.getenv(
            "STOREFRONT_STORAGE_NAMESPACE", defaults.storage_namespace
        ),
        http_timeout=_parse_timeout(
            os.getenv("STOREFRONT_HTTP_TIMEOUT"), defaults.http_timeout
        ),
        debug=bool(os.getenv("DEBUG")),
    )
