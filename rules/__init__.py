"""Category rule stores backing the merchant classifier."""

from rules.base import MissingContextError, RuleNotFoundError, RuleStore
from rules.memory import InMemoryRuleStore
from rules.sqlite import SQLiteRuleStore

__all__ = [
    "InMemoryRuleStore",
    "MissingContextError",
    "RuleNotFoundError",
    "RuleStore",
    "SQLiteRuleStore",
]
