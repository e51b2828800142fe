"""Keyword table loading and validation."""

import yaml
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, field_validator
from logger import get_logger

logger = get_logger()

DEFAULT_KEYWORDS_FILE = Path(__file__).parent / "default.yaml"


class KeywordEntry(BaseModel):
    """Category-name fragment and the merchant keywords that point at it."""

    fragment: str
    keywords: List[str]

    @field_validator("fragment")
    @classmethod
    def _lower_fragment(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("fragment cannot be empty")
        return value

    @field_validator("keywords")
    @classmethod
    def _lower_keywords(cls, value: List[str]) -> List[str]:
        # Whitespace inside keywords is significant ("bp " vs "bp"), so no strip
        return [keyword.lower() for keyword in value if keyword]


class KeywordTable(BaseModel):
    """Ordered list of keyword entries; earlier entries win."""

    version: int = 1
    entries: List[KeywordEntry] = []

    @classmethod
    def from_mapping(cls, mapping: Dict[str, List[str]]) -> "KeywordTable":
        """Build a table from a fragment -> keywords dict, keeping its order."""
        return cls(
            entries=[
                KeywordEntry(fragment=fragment, keywords=keywords)
                for fragment, keywords in mapping.items()
            ]
        )


_cache: Dict[Path, KeywordTable] = {}


def load_keyword_table(path: Optional[Path] = None) -> KeywordTable:
    """Load a keyword table from a YAML file.

    Args:
        path: YAML file to load. Defaults to the bundled default.yaml.

    Returns:
        Validated KeywordTable. Tables are cached per path.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If YAML is invalid.
        pydantic.ValidationError: If the YAML doesn't describe a keyword table.
    """
    path = Path(path) if path else DEFAULT_KEYWORDS_FILE

    if path in _cache:
        return _cache[path]

    if not path.exists():
        raise FileNotFoundError(f"Keyword file not found: {path}")

    logger.info(f"Loading keyword table from {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    table = KeywordTable.model_validate(data)
    _cache[path] = table

    return table
