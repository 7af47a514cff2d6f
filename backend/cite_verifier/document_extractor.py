import logging
import re
import zipfile
from pathlib import Path
from typing import List

import docx
import fitz  # PyMuPDF
from docx.opc.exceptions import PackageNotFoundError
from eyecite import clean_text

from .pattern_extractor import CASE_NAME_PATTERN, CITATION_PATTERN

logger = logging.getLogger(__name__)


class DocumentExtractionError(Exception):
    pass


class UnsupportedFormat(DocumentExtractionError):
    pass


class ExtractionFailed(DocumentExtractionError):
    pass


SUPPORTED_EXTENSIONS = ('.pdf', '.docx', '.txt')

# Lines that are almost always court headers/footers rather than citations
SKIP_MARKERS = (
    'FILED',
    'Page',
    'Case No.',
    'ORDER',
    'IT IS ORDERED',
    'UNITED STATES DISTRICT COURT',
)

# "Case Name, 123 Reporter 456 (Court Year)"
FULL_CITATION_PATTERN = re.compile(
    r'(?<![A-Za-z\s])([A-Za-z\s]+(?:\s+v\.\s+[A-Za-z\s]+)?),\s*'
    rf'{CITATION_PATTERN.pattern}'
    r'\s*\(([^)]+)\)'
)

WESTLAW_PATTERN = re.compile(r'(\d{4}\s+WL\s+\d+)')


class DocumentTextExtractor:
    """Extract raw text from PDF, Word (.docx) and plain-text files."""

    def extract_text(self, path) -> str:
        path = Path(path)
        extension = path.suffix.lower()

        if extension == '.pdf':
            return self._extract_pdf(path)
        if extension == '.docx':
            return self._extract_docx(path)
        if extension == '.txt':
            return self._extract_plain_text(path)

        raise UnsupportedFormat(
            f"Unsupported file type '{extension or path.name}'. "
            f"Use one of: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    def _extract_pdf(self, path: Path) -> str:
        try:
            doc = fitz.open(str(path))
        except (RuntimeError, OSError, ValueError) as e:
            raise ExtractionFailed(f"Could not open PDF file: {e}") from e

        try:
            pages = [page.get_text() for page in doc]
        finally:
            doc.close()

        logger.debug(f"Extracted {len(pages)} pages from {path.name}")
        return "\n".join(pages)

    def _extract_docx(self, path: Path) -> str:
        try:
            document = docx.Document(str(path))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
            raise ExtractionFailed(f"Could not extract text from Word document: {e}") from e

        parts = [para.text for para in document.paragraphs]

        # Tables of authorities are often laid out as tables
        for table in document.tables:
            for row in table.rows:
                for cell in row.cells:
                    parts.append(cell.text)

        return "\n".join(parts)

    def _extract_plain_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionFailed(f"Could not read text file: {e}") from e


def clean_citation_lines(text: str) -> str:
    """
    Reduce raw document text to one candidate citation per line.

    Header and footer lines are dropped. From each remaining line the first
    full citation is kept; failing that a bare case name, and failing that a
    Westlaw citation. Duplicates are removed, first occurrence wins.
    """
    kept: List[str] = []

    for line in text.splitlines():
        line = clean_text(line, ['inline_whitespace', 'underscores']).strip()

        if not line or any(marker in line for marker in SKIP_MARKERS):
            continue

        match = FULL_CITATION_PATTERN.search(line)
        if match:
            kept.append(match.group(0).strip())
            continue

        match = CASE_NAME_PATTERN.search(line)
        if match:
            kept.append(match.group(1).strip())
            continue

        match = WESTLAW_PATTERN.search(line)
        if match:
            kept.append(match.group(1))

    return "\n".join(dict.fromkeys(kept))
