"""Merchant -> category classification from learned rules.

Suggestions come from three places, in order of trust:

- group rules: the merchant description is mapped to a merchant group and the
  group has a rule (always preferred over pattern rules),
- pattern rules: fuzzy match of the normalized description against the
  normalized text of previously confirmed descriptions,
- the keyword table: fixed substrings such as "kroger" pointing at a category
  whose name contains "groceries".

Rules are reinforced every time the user confirms a categorization, so the
classifier improves from corrections without any model training.
"""

import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple
from config import Config
from keywords import KeywordTable, load_keyword_table
from logger import get_logger
from models.category import Category
from models.category_rule import (
    CONFIDENCE_STEP,
    GROUP_RULE_CONFIDENCE,
    MAX_CONFIDENCE,
    PATTERN_RULE_CONFIDENCE,
    CategoryRule,
    MerchantIdentity,
)
from rules.base import MissingContextError, RuleNotFoundError, RuleStore

logger = get_logger()

SOURCE_LEARNED = "learned"
SOURCE_KEYWORD = "keyword"

DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_LEARNED_THRESHOLD = 0.5
DEFAULT_KEYWORD_CONFIDENCE = 0.3

IDENTITY_LOCK_STRIPES = 64

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_NOISE_WORDS = re.compile(r"\b(inc|llc|ltd|corp|co|company|the)\b")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ClassificationResult:
    """A suggested category for a merchant."""

    category_id: int
    confidence: float  # 0.0 to 1.0
    source: str  # 'learned' or 'keyword'


def normalize_merchant(merchant: str) -> str:
    """Normalize a merchant description for matching.

    "Walmart Inc." and "  WALMART " both become "walmart".
    """
    text = _NON_ALNUM.sub("", merchant.lower())
    text = _NOISE_WORDS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j - 1] + (char_a != char_b),
                    current[j - 1] + 1,
                    previous[j] + 1,
                )
            )
        previous = current

    return previous[-1]


def similarity_score(a: str, b: str) -> float:
    """Score how alike two merchant strings are, from 0.0 to 1.0.

    Identical strings score 1.0. When one contains the other the score is the
    length ratio scaled by 0.95, otherwise it is one minus the normalized edit
    distance. The score is symmetric.
    """
    s1 = a.lower()
    s2 = b.lower()

    if s1 == s2:
        return 1.0

    shorter, longer = sorted((s1, s2), key=len)
    if shorter in longer:
        return len(shorter) / len(longer) * 0.95

    return 1 - levenshtein_distance(s1, s2) / len(longer)


def suggest_category_by_keywords(
    merchant: str, categories: Iterable[Category], table: KeywordTable
) -> Optional[int]:
    """Suggest a category from the keyword table.

    Args:
        merchant: Raw merchant description.
        categories: Categories that may be suggested.
        table: Keyword table to match against.

    Returns:
        The id of the first category whose name contains the fragment of the
        first entry with a matching keyword, or None.
    """
    merchant_lower = merchant.lower()
    categories = list(categories)

    for entry in table.entries:
        if not any(keyword in merchant_lower for keyword in entry.keywords):
            continue
        for category in categories:
            if entry.fragment in category.name.lower():
                return category.id

    return None


class Classifier:
    """Suggests categories for merchants and learns from confirmations.

    The same algorithm runs against any RuleStore backend.

    Args:
        store: Rule store scoped to the current user.
        keyword_table: Fallback keywords. Defaults to the bundled table.
        similarity_threshold: Minimum similarity for a pattern rule to count.
        learned_threshold: Confidence a learned rule needs to beat keywords.
        keyword_confidence: Confidence reported for keyword suggestions.
    """

    def __init__(
        self,
        store: RuleStore,
        keyword_table: Optional[KeywordTable] = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        learned_threshold: float = DEFAULT_LEARNED_THRESHOLD,
        keyword_confidence: float = DEFAULT_KEYWORD_CONFIDENCE,
    ):
        self.store = store
        self.keyword_table = keyword_table or load_keyword_table()
        self.similarity_threshold = similarity_threshold
        self.learned_threshold = learned_threshold
        self.keyword_confidence = keyword_confidence

        self._locks = [threading.Lock() for _ in range(IDENTITY_LOCK_STRIPES)]

    @classmethod
    def from_config(cls, config: Config, store: RuleStore) -> "Classifier":
        """Create a classifier with thresholds and keywords from config."""
        return cls(
            store,
            keyword_table=load_keyword_table(config.keywords_file),
            similarity_threshold=config.similarity_threshold,
            learned_threshold=config.learned_threshold,
            keyword_confidence=config.keyword_confidence,
        )

    def resolve_identity(self, merchant: str) -> MerchantIdentity:
        """Map a raw description to its merchant group, or to itself."""
        merchant_group_id = self.store.find_group_for_merchant(merchant)
        if merchant_group_id is not None:
            return MerchantIdentity.for_group(merchant_group_id)
        return MerchantIdentity.for_pattern(merchant)

    def find_learned_category(
        self, merchant: str, valid_category_ids: Set[int]
    ) -> Optional[ClassificationResult]:
        """Find the best learned rule for a merchant, ignoring thresholds.

        Rules pointing at categories outside valid_category_ids are skipped.
        """
        identity = self.resolve_identity(merchant)

        if identity.is_group:
            group_rules = [
                rule
                for rule in self.store.find_group_rules(identity.merchant_group_id)
                if rule.category_id in valid_category_ids
            ]
            if group_rules:
                best = max(
                    group_rules, key=lambda r: (r.usage_count, r.confidence_score)
                )
                return ClassificationResult(
                    category_id=best.category_id,
                    confidence=min(best.confidence_score / 100, 1.0),
                    source=SOURCE_LEARNED,
                )

        normalized = normalize_merchant(merchant)
        pattern_rules = sorted(
            (
                rule
                for rule in self.store.find_pattern_rules()
                if rule.category_id in valid_category_ids and rule.normalized_pattern
            ),
            key=lambda r: (-r.usage_count, -r.confidence_score),
        )

        best_match = None
        best_confidence = 0.0
        for rule in pattern_rules:
            similarity = similarity_score(normalized, rule.normalized_pattern)
            if similarity < self.similarity_threshold:
                continue

            adjusted = similarity * min(rule.confidence_score / 100, 1.0)
            if adjusted > best_confidence:
                best_confidence = adjusted
                best_match = ClassificationResult(
                    category_id=rule.category_id,
                    confidence=adjusted,
                    source=SOURCE_LEARNED,
                )

        return best_match

    def find_best_category(
        self, merchant: str, categories: Iterable[Category]
    ) -> Optional[ClassificationResult]:
        """Suggest a category for a merchant.

        Args:
            merchant: Raw transaction description.
            categories: Categories that currently exist. Nothing outside this
                list is ever suggested.

        Returns:
            ClassificationResult, or None when there is no suggestion.
        """
        categories = list(categories)
        valid_category_ids = {category.id for category in categories}

        learned = self.find_learned_category(merchant, valid_category_ids)
        if learned and learned.confidence >= self.learned_threshold:
            return learned

        keyword_category_id = suggest_category_by_keywords(
            merchant, categories, self.keyword_table
        )
        if keyword_category_id is not None:
            return ClassificationResult(
                category_id=keyword_category_id,
                confidence=self.keyword_confidence,
                source=SOURCE_KEYWORD,
            )

        # A weak learned signal is still better than nothing
        if learned:
            return learned

        logger.debug(f"No category suggestion for '{merchant}'")
        return None

    classify = find_best_category

    def learn(self, merchant: str, category_id: int) -> CategoryRule:
        """Reinforce (or create) the rule for merchant -> category.

        Args:
            merchant: Raw transaction description the user categorized.
            category_id: Category the user confirmed.

        Returns:
            The stored rule after reinforcement.

        Raises:
            MissingContextError: If the store has no user context.
            ValueError: If merchant is empty.
        """
        self.store.require_context()
        if not merchant or not merchant.strip():
            raise ValueError("merchant cannot be empty")

        identity = self.resolve_identity(merchant)
        initial_confidence = (
            GROUP_RULE_CONFIDENCE if identity.is_group else PATTERN_RULE_CONFIDENCE
        )
        with self._identity_lock(identity):
            rule = self.store.reinforce_rule(
                identity,
                category_id,
                initial_confidence=initial_confidence,
                last_used=datetime.now(),
                normalized_pattern=(
                    None if identity.is_group else normalize_merchant(merchant)
                ),
            )

        logger.debug(
            f"Rule {rule.id} for '{merchant}' -> category {category_id}: "
            f"usage {rule.usage_count}, confidence {rule.confidence_score}"
        )
        return rule

    def learn_many(self, categorized: Iterable[Tuple[str, int]]) -> int:
        """Learn from a batch of (merchant, category_id) confirmations.

        A failure to learn one pair is logged and the rest of the batch still
        runs. A missing user context aborts the whole batch.

        Returns:
            Number of pairs learned.
        """
        self.store.require_context()

        learned = 0
        failed = 0
        for merchant, category_id in categorized:
            try:
                self.learn(merchant, category_id)
                learned += 1
            except MissingContextError:
                raise
            except Exception as e:
                failed += 1
                logger.error(
                    f"Failed to learn '{merchant}' -> category {category_id}: {e}"
                )

        logger.info(f"Learned {learned} categorizations, {failed} failed")
        return learned

    def reassign_rule_category(
        self,
        rule_id: int,
        new_category_id: int,
        valid_category_ids: Optional[Set[int]] = None,
    ) -> CategoryRule:
        """Point a rule at another category, merging with an existing rule.

        If the merchant already has a rule for new_category_id, the two are
        merged: usage counts are summed, confidence becomes the larger of the
        two plus one step (capped), and the reassigned rule is deleted.

        Args:
            rule_id: Rule to reassign.
            new_category_id: Category the rule should point at.
            valid_category_ids: Optional set of existing category ids; a
                new_category_id outside it is rejected before any write.

        Returns:
            The surviving rule.

        Raises:
            MissingContextError: If the store has no user context.
            RuleNotFoundError: If rule_id does not exist.
            ValueError: If new_category_id is not a valid category.
        """
        self.store.require_context()

        if valid_category_ids is not None and new_category_id not in valid_category_ids:
            raise ValueError(f"Category with ID {new_category_id} not found")

        rule = self.store.get_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Rule with ID {rule_id} not found")

        if rule.category_id == new_category_id:
            return rule

        with self._identity_lock(rule.identity):
            existing = self.store.find_rule(rule.identity, new_category_id)

            if existing:
                usage_count = existing.usage_count + rule.usage_count
                confidence_score = min(
                    max(existing.confidence_score, rule.confidence_score)
                    + CONFIDENCE_STEP,
                    MAX_CONFIDENCE,
                )
                self.store.merge_and_delete(
                    existing.id,
                    rule.id,
                    usage_count=usage_count,
                    confidence_score=confidence_score,
                    last_used=datetime.now(),
                )
                logger.info(
                    f"Merged rule {rule.id} into rule {existing.id} "
                    f"(category {new_category_id})"
                )
                return self.store.get_rule(existing.id)

            self.store.update_rule_category(rule.id, new_category_id)
            logger.info(f"Rule {rule.id} now points at category {new_category_id}")
            return self.store.get_rule(rule.id)

    def list_rules(self) -> List[CategoryRule]:
        """Get every rule for the current user, most used first."""
        return self.store.find_all_rules()

    def delete_rule(self, rule_id: int) -> bool:
        """Delete a rule. Returns False if it did not exist."""
        return self.store.delete_rule(rule_id)

    def _identity_lock(self, identity: MerchantIdentity) -> threading.Lock:
        # Identities share a fixed pool of locks so the pool never grows
        return self._locks[hash(identity.key) % len(self._locks)]
