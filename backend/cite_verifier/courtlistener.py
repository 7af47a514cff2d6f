"""
Client for the CourtListener REST API (v4).

Wraps the citation-lookup, search and cluster endpoints behind pydantic
response models. Every non-success outcome is raised as a subclass of
CourtListenerAPIError; nothing is retried here.
"""
import asyncio
import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

import requests
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .token_store import TokenStore

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.courtlistener.com/api/rest/v4"
DEFAULT_SITE_URL = "https://www.courtlistener.com"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CourtListenerAPIError(Exception):
    kind = "unknown"


class InvalidRequestTarget(CourtListenerAPIError):
    kind = "invalid_request_target"


class InvalidResponseShape(CourtListenerAPIError):
    kind = "invalid_response_shape"


class Unauthorized(CourtListenerAPIError):
    kind = "unauthorized"


class Forbidden(CourtListenerAPIError):
    kind = "forbidden"


class RateLimitExceeded(CourtListenerAPIError):
    kind = "rate_limit_exceeded"


class ServerError(CourtListenerAPIError):
    kind = "server_error"

    def __init__(self, status_code: int):
        super().__init__(f"CourtListener returned HTTP {status_code}")
        self.status_code = status_code


class TransportFailure(CourtListenerAPIError):
    kind = "transport_failure"

    def __init__(self, cause: Exception):
        super().__init__(f"Request to CourtListener failed: {cause}")
        self.cause = cause


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class Cluster(BaseModel):
    """A case as returned inside a citation-lookup result."""

    id: int
    case_name: str
    absolute_url: str


class CitationLookupResult(BaseModel):
    citation: str = ""
    normalized_citations: List[str] = Field(default_factory=list)
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    status: int = 200
    error_message: str = ""
    clusters: List[Cluster] = Field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.status == 200 and len(self.clusters) > 0


class CaseSearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    case_name: str = Field(alias="caseName")
    citation: List[str] = Field(default_factory=list)
    absolute_url: str
    cluster_id: int
    court: str = ""
    date_filed: Optional[str] = Field(default=None, alias="dateFiled")


class SearchResponse(BaseModel):
    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[CaseSearchResult] = Field(default_factory=list)


class OpinionResponse(BaseModel):
    id: int
    case_name: str = ""
    citation: Any = None
    absolute_url: str = ""
    plain_text: str = ""


_LOOKUP_RESULTS = TypeAdapter(List[CitationLookupResult])
_SEARCH_RESPONSE = TypeAdapter(SearchResponse)
_OPINION_RESPONSE = TypeAdapter(OpinionResponse)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class CourtListenerClient:
    """Async client for CourtListener; blocking I/O runs in a worker thread."""

    def __init__(
        self,
        token_store: TokenStore,
        base_url: str = DEFAULT_API_URL,
        site_url: str = DEFAULT_SITE_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.token_store = token_store
        self.base_url = base_url
        self.site_url = site_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, token_store: TokenStore, session=None) -> "CourtListenerClient":
        return cls(
            token_store,
            base_url=settings.courtlistener_api_url,
            site_url=settings.courtlistener_site_url,
            timeout=settings.request_timeout,
            session=session,
        )

    def close(self):
        self.session.close()

    def absolute_url(self, relative_url: str) -> str:
        """Turn a CourtListener relative URL into a link to the site."""
        return f"{self.site_url}{relative_url}"

    # -- public operations --------------------------------------------------

    async def validate_citation(self, citation: str) -> List[CitationLookupResult]:
        """Look up a single citation string."""
        return await asyncio.to_thread(
            self._request, "POST", "citation-lookup/", _LOOKUP_RESULTS,
            json={"text": citation},
        )

    async def search_case_name(self, case_name: str) -> List[CaseSearchResult]:
        """Search opinions by case name."""
        response = await asyncio.to_thread(
            self._request, "GET", "search/", _SEARCH_RESPONSE,
            params={"type": "o", "case_name": case_name},
        )
        logger.debug(f"Case name search for {case_name!r}: {response.count} results")
        return response.results

    async def lookup_citations_in_text(self, text: str) -> List[CitationLookupResult]:
        """Let CourtListener find and resolve citations in free-form text."""
        if not self.token_store.has_token():
            raise Unauthorized("An API token is required for text lookup")
        return await asyncio.to_thread(
            self._request, "POST", "citation-lookup/", _LOOKUP_RESULTS,
            data={"text": text},
            content_type="application/x-www-form-urlencoded",
        )

    async def get_opinion_text(self, cluster_id: str) -> OpinionResponse:
        """Fetch a cluster, including the plain text of its opinion."""
        cluster_id = str(cluster_id)
        if not cluster_id.isdigit():
            raise InvalidRequestTarget(f"Invalid cluster id: {cluster_id!r}")
        return await asyncio.to_thread(
            self._request, "GET", f"clusters/{cluster_id}/", _OPINION_RESPONSE,
        )

    # -- plumbing -----------------------------------------------------------

    def _build_url(self, endpoint: str) -> str:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidRequestTarget(f"Invalid API base URL: {self.base_url!r}")
        return f"{self.base_url.rstrip('/')}/{endpoint}"

    def _headers(self, content_type: str) -> dict:
        headers = {"Content-Type": content_type}
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Token {token}"
        return headers

    def _request(self, method: str, endpoint: str, adapter: TypeAdapter,
                 content_type: str = "application/json", **kwargs):
        url = self._build_url(endpoint)
        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(content_type),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransportFailure(e) from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return self._decode(response, adapter)

    @staticmethod
    def _decode(response: requests.Response, adapter: TypeAdapter):
        status = response.status_code
        if status == 401:
            raise Unauthorized("CourtListener rejected the API token")
        if status == 403:
            raise Forbidden("API token lacks permission for this endpoint")
        if status == 429:
            raise RateLimitExceeded("CourtListener rate limit exceeded")
        if status != 200:
            raise ServerError(status)

        try:
            return adapter.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise InvalidResponseShape(f"Unexpected response body: {e}") from e
