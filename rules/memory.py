"""In-process rule store, for callers without a database and for tests."""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional
from models.category_rule import CategoryRule, MerchantIdentity
from rules.base import RuleNotFoundError, RuleStore


class InMemoryRuleStore(RuleStore):
    """Rule store kept in plain dictionaries.

    Every method takes the same lock, so each call is atomic with respect to
    the others. Returned rules are copies; mutating them does not touch the
    store.

    Args:
        user_id: Caller context.
        group_mappings: Optional initial raw description -> group id mapping.
    """

    def __init__(
        self,
        user_id: Optional[str],
        group_mappings: Optional[Dict[str, int]] = None,
    ):
        super().__init__(user_id)
        self._lock = threading.Lock()
        self._rules: Dict[int, CategoryRule] = {}
        self._group_mappings: Dict[str, int] = dict(group_mappings or {})
        self._next_id = 1

    def map_merchant(self, merchant: str, merchant_group_id: int) -> None:
        """Add a raw description to a merchant group."""
        self.require_context()
        with self._lock:
            self._group_mappings[merchant] = merchant_group_id

    def find_group_for_merchant(self, merchant: str) -> Optional[int]:
        self.require_context()
        with self._lock:
            return self._group_mappings.get(merchant)

    def find_group_rules(self, merchant_group_id: int) -> List[CategoryRule]:
        self.require_context()
        with self._lock:
            return [
                replace(rule)
                for rule in self._rules.values()
                if rule.merchant_group_id == merchant_group_id
            ]

    def find_pattern_rules(self) -> List[CategoryRule]:
        self.require_context()
        with self._lock:
            return [
                replace(rule)
                for rule in self._rules.values()
                if rule.pattern is not None
            ]

    def find_rule(
        self, identity: MerchantIdentity, category_id: int
    ) -> Optional[CategoryRule]:
        self.require_context()
        with self._lock:
            rule = self._lookup(identity, category_id)
            return replace(rule) if rule else None

    def get_rule(self, rule_id: int) -> Optional[CategoryRule]:
        self.require_context()
        with self._lock:
            rule = self._rules.get(rule_id)
            return replace(rule) if rule else None

    def find_all_rules(self) -> List[CategoryRule]:
        self.require_context()
        with self._lock:
            rules = sorted(
                self._rules.values(), key=lambda r: (-r.usage_count, r.id)
            )
            return [replace(rule) for rule in rules]

    def upsert_rule(
        self,
        identity: MerchantIdentity,
        category_id: int,
        usage_count: int,
        confidence_score: int,
        last_used: datetime,
        normalized_pattern: Optional[str] = None,
    ) -> CategoryRule:
        self.require_context()
        with self._lock:
            rule = self._lookup(identity, category_id)
            if rule is None:
                rule = CategoryRule(
                    id=self._next_id,
                    category_id=category_id,
                    confidence_score=confidence_score,
                    usage_count=usage_count,
                    last_used=last_used,
                    merchant_group_id=identity.merchant_group_id,
                    pattern=identity.pattern,
                    normalized_pattern=normalized_pattern,
                )
                self._rules[rule.id] = rule
                self._next_id += 1
            else:
                rule.usage_count = usage_count
                rule.confidence_score = confidence_score
                rule.last_used = last_used
            return replace(rule)

    def reinforce_rule(
        self,
        identity: MerchantIdentity,
        category_id: int,
        initial_confidence: int,
        last_used: datetime,
        normalized_pattern: Optional[str] = None,
    ) -> CategoryRule:
        self.require_context()
        with self._lock:
            rule = self._lookup(identity, category_id)
            if rule is None:
                rule = CategoryRule(
                    id=self._next_id,
                    category_id=category_id,
                    confidence_score=initial_confidence,
                    usage_count=1,
                    last_used=last_used,
                    merchant_group_id=identity.merchant_group_id,
                    pattern=identity.pattern,
                    normalized_pattern=normalized_pattern,
                )
                self._rules[rule.id] = rule
                self._next_id += 1
            else:
                rule.usage_count, rule.confidence_score = rule.strengthened()
                rule.last_used = last_used
            return replace(rule)

    def update_rule_category(self, rule_id: int, category_id: int) -> None:
        self.require_context()
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise RuleNotFoundError(f"Rule with ID {rule_id} not found")
            if self._lookup(rule.identity, category_id) not in (None, rule):
                raise ValueError(
                    f"A rule for this merchant and category {category_id} already exists"
                )
            rule.category_id = category_id

    def merge_and_delete(
        self,
        keep_rule_id: int,
        delete_rule_id: int,
        usage_count: int,
        confidence_score: int,
        last_used: datetime,
    ) -> None:
        self.require_context()
        with self._lock:
            keep = self._rules.get(keep_rule_id)
            if keep is None:
                raise RuleNotFoundError(f"Rule with ID {keep_rule_id} not found")
            keep.usage_count = usage_count
            keep.confidence_score = confidence_score
            keep.last_used = last_used
            self._rules.pop(delete_rule_id, None)

    def delete_rule(self, rule_id: int) -> bool:
        self.require_context()
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def _lookup(
        self, identity: MerchantIdentity, category_id: int
    ) -> Optional[CategoryRule]:
        for rule in self._rules.values():
            if rule.category_id == category_id and rule.identity == identity:
                return rule
        return None
