"""Learned merchant -> category rules."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

# Starting confidence for a freshly learned rule
GROUP_RULE_CONFIDENCE = 50
PATTERN_RULE_CONFIDENCE = 30

MAX_CONFIDENCE = 100
CONFIDENCE_STEP = 5


@dataclass(frozen=True)
class MerchantIdentity:
    """The real-world merchant behind a raw description.

    Exactly one of merchant_group_id or pattern is set.
    """

    merchant_group_id: Optional[int] = None
    pattern: Optional[str] = None

    def __post_init__(self):
        if (self.merchant_group_id is None) == (self.pattern is None):
            raise ValueError(
                "MerchantIdentity needs exactly one of merchant_group_id or pattern"
            )

    @classmethod
    def for_group(cls, merchant_group_id: int) -> "MerchantIdentity":
        return cls(merchant_group_id=merchant_group_id)

    @classmethod
    def for_pattern(cls, pattern: str) -> "MerchantIdentity":
        return cls(pattern=pattern)

    @property
    def is_group(self) -> bool:
        return self.merchant_group_id is not None

    @property
    def key(self) -> Tuple[str, Union[int, str]]:
        """Hashable key identifying this merchant across rules."""
        if self.is_group:
            return ("group", self.merchant_group_id)
        return ("pattern", self.pattern)


@dataclass
class CategoryRule:
    """A (merchant identity, category) pair with its learned confidence.

    Attributes:
        id: Unique identifier (auto-generated).
        category_id: Category the merchant maps to.
        confidence_score: Integer trust level, 0 to 100.
        usage_count: Number of confirmations, at least 1.
        last_used: Timestamp of the most recent confirmation.
        merchant_group_id: Group this rule applies to (group rules).
        pattern: Raw description text this rule applies to (pattern rules).
        normalized_pattern: normalize_merchant(pattern), used for fuzzy matching.
    """

    id: int
    category_id: int
    confidence_score: int
    usage_count: int
    last_used: datetime
    merchant_group_id: Optional[int] = None
    pattern: Optional[str] = None
    normalized_pattern: Optional[str] = None

    @property
    def identity(self) -> MerchantIdentity:
        return MerchantIdentity(
            merchant_group_id=self.merchant_group_id, pattern=self.pattern
        )

    def strengthened(self) -> Tuple[int, int]:
        """Return (usage_count, confidence_score) after one more confirmation."""
        return (
            self.usage_count + 1,
            min(self.confidence_score + CONFIDENCE_STEP, MAX_CONFIDENCE),
        )
