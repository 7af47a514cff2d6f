#!/usr/bin/env python3
"""
Validate legal citations from a document or inline text against CourtListener.

Usage:
    cite-verifier brief.pdf --token YOUR_TOKEN
    cite-verifier --text "Brown v. Board of Education, 347 U.S. 483 (1954)"

The token can also be set via the COURTLISTENER_API_TOKEN environment
variable or a .env file.
"""
import argparse
import asyncio
import json
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .citation_service import CitationService
from .citation_store import CitationStore, PersistenceError
from .config import configure_logging, get_settings
from .courtlistener import CourtListenerClient
from .database import init_db, make_engine, make_session_factory
from .document_extractor import DocumentExtractionError, DocumentTextExtractor, clean_citation_lines
from .models import STATUS_DISPLAY, Citation, ValidationStatus
from .token_store import TokenStore

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check legal citations against CourtListener."
    )
    parser.add_argument("file", nargs="?", help="PDF, DOCX or TXT file to check")
    parser.add_argument("--text", help="Check this text instead of a file")
    parser.add_argument("--token", help="CourtListener API token")
    parser.add_argument("--database-url", help="SQLAlchemy URL for storing results")
    parser.add_argument("--fetch-opinions", action="store_true",
                        help="Also download the opinion text for matched cases")
    parser.add_argument("--clear", action="store_true",
                        help="Delete previously stored results first")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def read_input(args, extractor: Optional[DocumentTextExtractor] = None) -> str:
    if args.text:
        return args.text
    extractor = extractor or DocumentTextExtractor()
    return clean_citation_lines(extractor.extract_text(args.file))


def citation_to_dict(citation: Citation) -> dict:
    return {
        "id": citation.id,
        "original_text": citation.original_text,
        "normalized_citation": citation.normalized_citation,
        "case_name": citation.case_name,
        "citation_status": citation.citation_status.value,
        "case_name_status": citation.case_name_status.value,
        "cluster_id": citation.cluster_id,
        "courtlistener_url": citation.courtlistener_url,
        "notes": citation.notes,
    }


def print_report(citations: List[Citation]):
    if not citations:
        print("No citations found.")
        return

    for i, citation in enumerate(citations, 1):
        cite_label = STATUS_DISPLAY[citation.citation_status][0]
        name_label = STATUS_DISPLAY[citation.case_name_status][0]
        print(f"\n{i}. {citation.original_text}")
        print(f"   Citation: {cite_label}   Case name: {name_label}")
        if citation.case_name:
            print(f"   Case: {citation.case_name}")
        if citation.normalized_citation:
            print(f"   Normalized: {citation.normalized_citation}")
        if citation.courtlistener_url:
            print(f"   Link: {citation.courtlistener_url}")
        if citation.notes:
            for line in citation.notes.strip().splitlines():
                print(f"   {line}")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.text and not args.file:
        parser.print_usage(sys.stderr)
        print("error: provide a file or --text", file=sys.stderr)
        return EXIT_ERROR

    settings = get_settings()
    updates = {}
    if args.database_url:
        updates["database_url"] = args.database_url
    if args.fetch_opinions:
        updates["fetch_opinion_text"] = True
    if updates:
        settings = settings.model_copy(update=updates)

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        text = read_input(args)
    except DocumentExtractionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    token_store = TokenStore.from_settings(settings)
    if args.token is not None:
        try:
            token_store.set(args.token)
        except ValueError as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_ERROR
    if not token_store.has_token():
        print("Warning: no COURTLISTENER_API_TOKEN set; requests will be unauthenticated",
              file=sys.stderr)

    engine = make_engine(settings.database_url)
    init_db(engine)
    db = make_session_factory(engine)()

    service = CitationService(
        CourtListenerClient.from_settings(settings, token_store),
        CitationStore(db),
        fetch_opinions=settings.fetch_opinion_text,
    )

    try:
        if args.clear:
            service.clear_all()
        citations = asyncio.run(service.validate_text(text))

        if args.json:
            print(json.dumps([citation_to_dict(c) for c in citations], indent=2))
        else:
            print_report(citations)

        all_valid = all(
            c.citation_status == ValidationStatus.VALID
            and c.case_name_status == ValidationStatus.VALID
            for c in citations
        )
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        db.close()
        engine.dispose()

    return EXIT_OK if all_valid else EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
