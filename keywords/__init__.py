"""Keyword fallback tables for merchant classification."""

from keywords.loader import KeywordEntry, KeywordTable, load_keyword_table

__all__ = ["KeywordEntry", "KeywordTable", "load_keyword_table"]
