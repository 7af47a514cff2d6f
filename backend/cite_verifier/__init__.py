"""Extract legal citations from text and verify them against CourtListener."""

__version__ = "1.0.0"
