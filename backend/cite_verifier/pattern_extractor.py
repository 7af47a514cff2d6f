"""
Local, best-effort extraction of case names and reporter citations.

Everything here is a pure function of the input line. When a line is
ambiguous the functions return None instead of guessing; the caller falls
back to the server-side lookup in that case.
"""
import re
from typing import Optional, Tuple


# Volume, reporter abbreviation, page: "347 U.S. 483", "534 F.3d 1290",
# "123 F. Supp. 2d 456", "2024 WL 123456". The first reporter token is an
# abbreviation: it either contains a period ("U.S.", "F.3d", "S.") or is all
# capitals and digits ("WL", "P"), so dates like "12 March 2020" are not
# citations. Later tokens must contain a period or be series markers
# ("2d", "3d", "4th").
REPORTER_FIRST = r"(?:[A-Z][A-Za-z0-9']*\.[A-Za-z0-9.']*|[A-Z][A-Z0-9]*)"
REPORTER_REST = r"(?:[A-Za-z0-9']*\.[A-Za-z0-9.']*|\d+(?:st|nd|rd|d|th))"
CITATION_PATTERN = re.compile(
    rf"(\d+\s+{REPORTER_FIRST}(?:\s+{REPORTER_REST})*\s+\d+)"
)

# "Plaintiff v. Defendant" with an explicit v./vs./versus separator.
# Matches only start where a run of name characters begins, and the words
# before the separator are whitespace-delimited, so long lines without a
# separator are rejected in linear time.
CASE_NAME_PATTERN = re.compile(
    r"(?<![A-Za-z.\s])"
    r"(\s*(?:[A-Za-z.]+\s+)+?(?:v\.|vs\.|versus)\s+[A-Za-z.\s]+)"
)


def find_citation(text: str) -> Optional[str]:
    """Return the first citation-shaped token in text, or None."""
    match = CITATION_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).strip()


def extract_case_name(line: str) -> Optional[str]:
    """Return the first "X v. Y" style case name in line, or None."""
    match = CASE_NAME_PATTERN.search(line)
    if not match:
        return None
    case_name = match.group(1).strip()
    return case_name or None


def extract_case_name_and_citation(line: str) -> Optional[Tuple[str, str]]:
    """
    Pull a (case name, citation) pair out of a single line.

    1. If the line holds a citation-shaped token and a comma, the case name
       is everything before the first comma.
    2. Otherwise find a "v."/"vs."/"versus" case name and look for a
       citation in the text that follows it.

    Returns None when neither strategy yields both parts.
    """
    citation = find_citation(line)
    if citation and "," in line:
        case_name = line.split(",", 1)[0].strip()
        if case_name:
            return case_name, citation

    match = CASE_NAME_PATTERN.search(line)
    if match:
        case_name = match.group(1).strip()
        remaining = line[match.end():]
        citation = find_citation(remaining)
        if case_name and citation:
            return case_name, citation

    return None
