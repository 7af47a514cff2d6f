import asyncio
import logging
from typing import List, Optional

from .citation_store import CitationStore
from .courtlistener import (
    CaseSearchResult,
    CitationLookupResult,
    CourtListenerAPIError,
    CourtListenerClient,
)
from .models import Citation, ValidationStatus
from .pattern_extractor import extract_case_name, extract_case_name_and_citation

logger = logging.getLogger(__name__)

ADDITIONAL_MATCHES_HEADER = "Additional similar cases found:"
SIMILAR_MATCHES_HEADER = "Similar cases found (but not exact matches):"


def split_lines(text: str) -> List[str]:
    """Split input into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def format_case_list(header: str, results: List[CaseSearchResult]) -> str:
    lines = [header]
    for result in results:
        date_filed = result.date_filed or "date unknown"
        lines.append(f"- {result.case_name} ({result.court}, {date_filed})")
    return "\n".join(lines) + "\n"


class CitationService:
    """
    Validates legal citations line by line against CourtListener.

    For each line the local pattern extractor is tried first. A recognised
    citation is looked up directly; when that fails the case name is searched
    instead. Lines the extractor cannot parse go to CourtListener's
    server-side text lookup, and finally to a case-name-only search.
    Every finished record is inserted into the store and the whole pass is
    committed once at the end.
    """

    def __init__(self, client: CourtListenerClient, store: CitationStore,
                 fetch_opinions: bool = False):
        self.client = client
        self.store = store
        self.fetch_opinions = fetch_opinions

    async def validate_text(self, text: str,
                            cancel_event: Optional[asyncio.Event] = None) -> List[Citation]:
        """
        Run one validation pass over text and return the new records.

        Setting cancel_event stops the pass before the next line starts;
        lines already finished are still committed. Raises PersistenceError
        if the final commit fails.
        """
        lines = split_lines(text)
        logger.info(f"Starting citation validation for {len(lines)} lines")

        results = []
        for index, line in enumerate(lines):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Validation cancelled after {index} of {len(lines)} lines")
                break

            citation = Citation(original_text=line)
            try:
                await self._validate_line(citation)
            except asyncio.CancelledError:
                citation.resolve_pending()
                self.store.insert(citation)
                results.append(citation)
                self.store.commit()
                raise
            except Exception:
                logger.exception(f"Unexpected error validating line: {line!r}")
                citation.resolve_pending()

            if not citation.is_resolved:
                logger.warning(f"Line left unresolved, marking invalid: {line!r}")
                citation.resolve_pending()

            self.store.insert(citation)
            results.append(citation)
            logger.info(
                f"Line {index + 1}: citation={citation.citation_status.value} "
                f"case_name={citation.case_name_status.value}"
            )

        self.store.commit()
        logger.info(f"Citation validation complete: {len(results)} records saved")
        return results

    def list_citations(self) -> List[Citation]:
        return self.store.list()

    def get_citation(self, citation_id: str) -> Optional[Citation]:
        return self.store.get(citation_id)

    def delete_citation(self, citation: Citation):
        self.store.delete(citation)
        self.store.commit()

    def clear_all(self):
        self.store.delete_all()

    # -- per-line decision tree -------------------------------------------

    async def _validate_line(self, citation: Citation):
        line = citation.original_text
        extracted = extract_case_name_and_citation(line)

        if extracted:
            case_name, cite = extracted
            logger.debug(f"Extracted case name {case_name!r} and citation {cite!r}")
            citation.case_name = case_name

            match = await self._lookup(self.client.validate_citation, cite)
            if match:
                self._apply_lookup_match(citation, match)
            else:
                logger.debug("Citation lookup failed, searching by case name")
                citation.citation_status = ValidationStatus.INVALID
                await self._search_case_name(citation, case_name)
        else:
            logger.debug("Local parsing failed, trying server-side text lookup")
            match = await self._lookup(self.client.lookup_citations_in_text, line)
            if match:
                self._apply_lookup_match(citation, match)
            else:
                case_name = extract_case_name(line)
                citation.citation_status = ValidationStatus.INVALID
                if case_name:
                    logger.debug(f"Extracted case name only: {case_name!r}")
                    citation.case_name = case_name
                    await self._search_case_name(citation, case_name)
                else:
                    logger.debug("Could not extract a case name from line")
                    citation.case_name_status = ValidationStatus.INVALID

        if self.fetch_opinions and citation.cluster_id:
            await self._fetch_opinion(citation)

    async def _lookup(self, operation, text: str) -> Optional[CitationLookupResult]:
        """Return the first lookup result if it matched a case, else None."""
        try:
            results = await operation(text)
        except CourtListenerAPIError as e:
            logger.warning(f"Citation lookup failed ({e.kind}): {e}")
            return None

        if results and results[0].is_match:
            return results[0]
        return None

    def _apply_lookup_match(self, citation: Citation, result: CitationLookupResult):
        cluster = result.clusters[0]
        citation.citation_status = ValidationStatus.VALID
        citation.normalized_citation = (
            result.normalized_citations[0] if result.normalized_citations else None
        )
        citation.set_match(cluster.id, self.client.absolute_url(cluster.absolute_url))
        citation.case_name = cluster.case_name
        citation.case_name_status = ValidationStatus.VALID

    async def _search_case_name(self, citation: Citation, case_name: str):
        try:
            results = await self.client.search_case_name(case_name)
        except CourtListenerAPIError as e:
            logger.warning(f"Case name search failed ({e.kind}): {e}")
            citation.case_name_status = ValidationStatus.INVALID
            return

        # Exact, case- and whitespace-sensitive comparison
        exact = next((r for r in results if r.case_name == case_name), None)

        if exact is not None:
            logger.debug(f"Found exact case name match: {exact.case_name!r}")
            citation.case_name_status = ValidationStatus.VALID
            citation.set_match(exact.cluster_id, self.client.absolute_url(exact.absolute_url))
            others = [r for r in results if r is not exact]
            if others:
                citation.notes = format_case_list(ADDITIONAL_MATCHES_HEADER, others)
        else:
            logger.debug(f"No exact case name match among {len(results)} results")
            citation.case_name_status = ValidationStatus.INVALID
            citation.clear_match()
            if results:
                citation.notes = format_case_list(SIMILAR_MATCHES_HEADER, results)

    async def _fetch_opinion(self, citation: Citation):
        try:
            opinion = await self.client.get_opinion_text(citation.cluster_id)
        except CourtListenerAPIError as e:
            logger.warning(f"Could not fetch opinion for cluster {citation.cluster_id}: {e}")
            return
        citation.opinion_text = opinion.plain_text or None
