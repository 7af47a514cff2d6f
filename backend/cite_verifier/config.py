import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseSettings):
    database_url: str = "sqlite:///./citations.db"
    courtlistener_api_url: str = "https://www.courtlistener.com/api/rest/v4"
    courtlistener_site_url: str = "https://www.courtlistener.com"
    courtlistener_api_token: Optional[str] = None
    request_timeout: float = 30.0
    fetch_opinion_text: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()


def configure_logging(level: str = "INFO"):
    """Set up root logging once for the API app or the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
