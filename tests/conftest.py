"""
Pytest configuration and fixtures.
"""

import pytest
from typing import Dict, List, Optional

from cite_verifier.citation_service import CitationService
from cite_verifier.citation_store import CitationStore
from cite_verifier.config import Settings
from cite_verifier.courtlistener import (
    CaseSearchResult,
    CitationLookupResult,
    Cluster,
    OpinionResponse,
)
from cite_verifier.database import init_db, make_engine, make_session_factory
from cite_verifier.models import ValidationStatus


SITE_URL = "https://www.courtlistener.com"


class FakeCourtListener:
    """
    Scripted stand-in for CourtListenerClient.

    Each table maps the request argument to either a response or an
    exception instance, which is raised instead.
    """

    def __init__(self):
        self.citation_lookups: Dict[str, object] = {}
        self.text_lookups: Dict[str, object] = {}
        self.searches: Dict[str, object] = {}
        self.opinions: Dict[str, object] = {}
        self.calls: List[tuple] = []

    def absolute_url(self, relative_url: str) -> str:
        return f"{SITE_URL}{relative_url}"

    async def validate_citation(self, citation):
        self.calls.append(("validate_citation", citation))
        return self._respond(self.citation_lookups, citation, [])

    async def lookup_citations_in_text(self, text):
        self.calls.append(("lookup_citations_in_text", text))
        return self._respond(self.text_lookups, text, [])

    async def search_case_name(self, case_name):
        self.calls.append(("search_case_name", case_name))
        return self._respond(self.searches, case_name, [])

    async def get_opinion_text(self, cluster_id):
        self.calls.append(("get_opinion_text", cluster_id))
        return self._respond(self.opinions, cluster_id, None)

    def called(self, operation: str) -> List:
        return [arg for name, arg in self.calls if name == operation]

    @staticmethod
    def _respond(table, key, default):
        value = table.get(key, default)
        if isinstance(value, Exception):
            raise value
        return value


def lookup_match(cluster_id: int, case_name: str, absolute_url: str,
                 normalized: Optional[str] = None) -> List[CitationLookupResult]:
    """A citation-lookup response with a single matching cluster."""
    return [
        CitationLookupResult(
            citation=normalized or "",
            normalized_citations=[normalized] if normalized else [],
            status=200,
            clusters=[Cluster(id=cluster_id, case_name=case_name, absolute_url=absolute_url)],
        )
    ]


def lookup_miss(citation: str = "") -> List[CitationLookupResult]:
    """A citation-lookup response that found no cluster."""
    return [CitationLookupResult(citation=citation, status=200, clusters=[])]


def search_result(case_name: str, cluster_id: int, court: str = "Supreme Court",
                  date_filed: str = "1954-05-17") -> CaseSearchResult:
    return CaseSearchResult(
        case_name=case_name,
        cluster_id=cluster_id,
        absolute_url=f"/opinion/{cluster_id}/case/",
        court=court,
        date_filed=date_filed,
        citation=[],
    )


def opinion(cluster_id: int, plain_text: str) -> OpinionResponse:
    return OpinionResponse(id=cluster_id, plain_text=plain_text)


def assert_invariants(record):
    """Checks that must hold for every record once its pass has finished."""
    assert record.original_text
    assert record.citation_status != ValidationStatus.PENDING
    assert record.case_name_status != ValidationStatus.PENDING
    assert (record.cluster_id is None) == (record.courtlistener_url is None)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, database_url="sqlite://", courtlistener_api_token=None)


@pytest.fixture
def db_session():
    engine = make_engine("sqlite://")
    init_db(engine)
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db_session) -> CitationStore:
    return CitationStore(db_session)


@pytest.fixture
def fake_client() -> FakeCourtListener:
    return FakeCourtListener()


@pytest.fixture
def service(fake_client, store) -> CitationService:
    return CitationService(fake_client, store)
