# config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

# --------------------------------------------------
# Remote API
# --------------------------------------------------
API_URL = os.getenv("CONSOLE_API_URL", "http://localhost:8000/api")
REQUEST_TIMEOUT = float(os.getenv("CONSOLE_REQUEST_TIMEOUT", "10"))
LANGUAGE = os.getenv("CONSOLE_LANGUAGE", "en")

# --------------------------------------------------
# Screens / logging
# --------------------------------------------------
PAGE_SIZE = int(os.getenv("CONSOLE_PAGE_SIZE", "10"))
LOG_LEVEL = os.getenv("CONSOLE_LOG_LEVEL", "INFO").upper()


class Settings(BaseModel):
    api_url: str = API_URL
    request_timeout: float = REQUEST_TIMEOUT
    language: str = LANGUAGE
    page_size: int = PAGE_SIZE
    log_level: str = LOG_LEVEL


def get_settings(**overrides) -> Settings:
    """Settings from the environment, with optional per-call overrides."""
    return Settings(**overrides)
