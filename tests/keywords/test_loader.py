import pytest
from pydantic import ValidationError

from keywords.loader import (
    DEFAULT_KEYWORDS_FILE,
    KeywordEntry,
    KeywordTable,
    load_keyword_table,
)


class TestKeywordTable:
    """Tests for keyword table models."""

    def test_entries_are_lowercased(self):
        entry = KeywordEntry(fragment=" Groceries ", keywords=["KROGER", "Whole Foods"])

        assert entry.fragment == "groceries"
        assert entry.keywords == ["kroger", "whole foods"]

    def test_keyword_whitespace_is_kept(self):
        entry = KeywordEntry(fragment="gas", keywords=["BP ", ""])

        assert entry.keywords == ["bp "]

    def test_empty_fragment_rejected(self):
        with pytest.raises(ValidationError):
            KeywordEntry(fragment="  ", keywords=["kroger"])

    def test_from_mapping_keeps_order(self):
        table = KeywordTable.from_mapping(
            {"restaurants": ["pizza"], "groceries": ["kroger"]}
        )

        assert [e.fragment for e in table.entries] == ["restaurants", "groceries"]


class TestLoadKeywordTable:
    """Tests for load_keyword_table."""

    def test_default_table(self):
        table = load_keyword_table()

        fragments = [e.fragment for e in table.entries]
        assert fragments[:3] == ["groceries", "restaurants", "gas"]
        assert "bp " in table.entries[2].keywords

    def test_default_table_is_cached(self):
        assert load_keyword_table() is load_keyword_table(DEFAULT_KEYWORDS_FILE)

    def test_custom_file(self, tmp_path):
        path = tmp_path / "keywords.yaml"
        path.write_text(
            "version: 1\n"
            "entries:\n"
            "  - fragment: Coffee\n"
            "    keywords: [Blue Bottle, peets]\n"
        )

        table = load_keyword_table(path)

        assert len(table.entries) == 1
        assert table.entries[0].fragment == "coffee"
        assert table.entries[0].keywords == ["blue bottle", "peets"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_keyword_table(path).entries == []

    def test_invalid_table(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("entries:\n  - keywords: [kroger]\n")

        with pytest.raises(ValidationError):
            load_keyword_table(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Keyword file not found"):
            load_keyword_table(tmp_path / "missing.yaml")
