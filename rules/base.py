"""Base interface for category rule stores."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from models.category_rule import CategoryRule, MerchantIdentity


class MissingContextError(Exception):
    """Raised when a rule store is used without a caller (user) context."""


class RuleNotFoundError(LookupError):
    """Raised when a rule id does not exist for the current caller."""


class RuleStore(ABC):
    """Abstract base class for rule stores.

    A store is scoped to one caller: every read and write only sees the rules,
    merchant groups and mappings belonging to ``user_id``. Implementations must
    keep at most one rule per (merchant identity, category) pair.

    Args:
        user_id: Caller context. Empty or None makes every operation fail.
    """

    def __init__(self, user_id: Optional[str]):
        self.user_id = user_id

    def require_context(self) -> str:
        """Return the caller id, or raise MissingContextError."""
        if not self.user_id:
            raise MissingContextError("No user context available for rule store")
        return self.user_id

    @abstractmethod
    def find_group_for_merchant(self, merchant: str) -> Optional[int]:
        """Exact lookup of a raw description in the merchant mapping table.

        Returns:
            The merchant group id, or None if the description is not grouped.
        """

    @abstractmethod
    def find_group_rules(self, merchant_group_id: int) -> List[CategoryRule]:
        """Get every rule for a merchant group, in no particular order."""

    @abstractmethod
    def find_pattern_rules(self) -> List[CategoryRule]:
        """Get every pattern (non-group) rule."""

    @abstractmethod
    def find_rule(
        self, identity: MerchantIdentity, category_id: int
    ) -> Optional[CategoryRule]:
        """Get the rule for an (identity, category) pair, if any."""

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[CategoryRule]:
        """Get a rule by id."""

    @abstractmethod
    def find_all_rules(self) -> List[CategoryRule]:
        """Get every rule, most used first."""

    @abstractmethod
    def upsert_rule(
        self,
        identity: MerchantIdentity,
        category_id: int,
        usage_count: int,
        confidence_score: int,
        last_used: datetime,
        normalized_pattern: Optional[str] = None,
    ) -> CategoryRule:
        """Insert the (identity, category) rule or overwrite its counters.

        Returns:
            The stored rule.
        """

    @abstractmethod
    def reinforce_rule(
        self,
        identity: MerchantIdentity,
        category_id: int,
        initial_confidence: int,
        last_used: datetime,
        normalized_pattern: Optional[str] = None,
    ) -> CategoryRule:
        """Record one confirmation of the (identity, category) rule, atomically.

        A new rule starts at usage 1 with initial_confidence. An existing rule
        gets usage + 1 and confidence + CONFIDENCE_STEP, capped at
        MAX_CONFIDENCE. The increment happens inside the store, so concurrent
        callers never lose a confirmation.

        Returns:
            The stored rule after the update.
        """

    @abstractmethod
    def update_rule_category(self, rule_id: int, category_id: int) -> None:
        """Point an existing rule at another category."""

    @abstractmethod
    def merge_and_delete(
        self,
        keep_rule_id: int,
        delete_rule_id: int,
        usage_count: int,
        confidence_score: int,
        last_used: datetime,
    ) -> None:
        """Write merged counters onto one rule and delete the other, atomically."""

    @abstractmethod
    def delete_rule(self, rule_id: int) -> bool:
        """Delete a rule.

        Returns:
            True if a rule was deleted, False if not found.
        """
