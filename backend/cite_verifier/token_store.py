import logging
from typing import Optional

logger = logging.getLogger(__name__)


class TokenStore:
    """
    Holds the CourtListener API token.

    One instance is created at startup and handed to every client that needs
    it. The token is only ever replaced as a whole, so readers in the middle
    of a validation pass see either the old value or the new one.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token.strip() if token and token.strip() else None

    @classmethod
    def from_settings(cls, settings) -> "TokenStore":
        return cls(settings.courtlistener_api_token)

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str):
        if not token or not token.strip():
            raise ValueError("API token must not be blank")
        self._token = token.strip()
        logger.info(f"API token set: {self._token[:8]}...")

    def clear(self):
        self._token = None
        logger.info("API token cleared")

    def has_token(self) -> bool:
        return self._token is not None
