# bestiary/config.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Automatically load .env in project root

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_RENDER_HOST = "127.0.0.1"
DEFAULT_RENDER_PORT = 8788

_handler: Optional[logging.Handler] = None


def get_bestiary_paths() -> list[str]:
    raw = os.getenv("BESTIARY_PATHS", "")
    return [p.strip() for p in raw.split(os.pathsep) if p.strip()]


def get_storage_base_url() -> str:
    return os.getenv("STORAGE_API_BASE", "").strip().rstrip("/")


def get_storage_api_key() -> str:
    return os.getenv("STORAGE_API_KEY", "").strip()


def get_log_level() -> str:
    return os.getenv("BESTIARY_LOG_LEVEL", "INFO").strip().upper() or "INFO"


def get_render_token() -> str:
    return os.getenv("RENDER_TOKEN", "").strip()


def get_render_host() -> str:
    return os.getenv("RENDER_HOST", DEFAULT_RENDER_HOST).strip() or DEFAULT_RENDER_HOST


def get_render_port() -> int:
    try:
        return int(os.getenv("RENDER_PORT", DEFAULT_RENDER_PORT))
    except ValueError:
        return DEFAULT_RENDER_PORT


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach one stream handler to the root logger; safe to call repeatedly."""
    global _handler
    root = logging.getLogger()
    root.setLevel((level or get_log_level()).upper())
    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
    return root
