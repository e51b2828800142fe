"""Tests for merchant classification and rule learning."""

import threading
from datetime import datetime

import pytest

from categorization import (
    IDENTITY_LOCK_STRIPES,
    SOURCE_KEYWORD,
    SOURCE_LEARNED,
    Classifier,
    levenshtein_distance,
    normalize_merchant,
    similarity_score,
    suggest_category_by_keywords,
)
from models.category_rule import MerchantIdentity
from rules.base import MissingContextError, RuleNotFoundError
from rules.memory import InMemoryRuleStore
from tests.helpers import make_category

NOW = datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def categories():
    return [
        make_category(1, "Groceries"),
        make_category(2, "Gas"),
        make_category(3, "Household"),
        make_category(7, "Restaurants"),
    ]


@pytest.fixture
def classifier(memory_store, keyword_table):
    return Classifier(memory_store, keyword_table=keyword_table)


class TestNormalizeMerchant:
    """Tests for normalize_merchant."""

    def test_strips_suffix_and_punctuation(self):
        assert normalize_merchant("Walmart Inc.") == normalize_merchant("walmart")
        assert normalize_merchant("Walmart Inc.") == "walmart"

    def test_case_and_whitespace_insensitive(self):
        assert normalize_merchant("  TRADER   Joe's\t#552 ") == "trader joes 552"

    def test_removes_the_and_company_words(self):
        assert normalize_merchant("The Home Depot Co") == "home depot"
        assert normalize_merchant("Acme Company LLC") == "acme"

    def test_keeps_noise_words_inside_longer_words(self):
        assert normalize_merchant("Costco Theater") == "costco theater"

    @pytest.mark.parametrize(
        "merchant",
        [
            "Walmart Inc.",
            "the the the",
            "SQ *THE COFFEE CO.",
            "Amazon.com*2K4 LTD Corp",
            "",
            "   ",
            "café  déjà vu",
        ],
    )
    def test_idempotent(self, merchant):
        once = normalize_merchant(merchant)

        assert normalize_merchant(once) == once


class TestSimilarityScore:
    """Tests for similarity_score and levenshtein_distance."""

    def test_identical_strings(self):
        assert similarity_score("kroger", "kroger") == 1.0
        assert similarity_score("", "") == 1.0

    def test_case_insensitive(self):
        assert similarity_score("Kroger", "kroger") == 1.0

    def test_containment(self):
        assert similarity_score("kroger", "kroger 123") == pytest.approx(6 / 10 * 0.95)

    def test_symmetric(self):
        pairs = [
            ("kroger", "kroger 123"),
            ("starbucks", "starbuck"),
            ("shell oil", "shel oil"),
            ("abc", "xyz"),
        ]
        for a, b in pairs:
            assert similarity_score(a, b) == similarity_score(b, a)

    def test_disjoint_equal_length_strings_score_zero(self):
        assert similarity_score("abc", "xyz") == 0.0

    def test_edit_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert similarity_score("starbucks 1", "starbucks 2") == pytest.approx(1 - 1 / 11)

    def test_empty_against_non_empty(self):
        assert similarity_score("", "kroger") == 0.0


class TestKeywordSuggestion:
    """Tests for suggest_category_by_keywords."""

    def test_matches_keyword_to_category_name(self, categories, keyword_table):
        assert suggest_category_by_keywords("KROGER #123", categories, keyword_table) == 1

    def test_category_name_match_is_substring(self, keyword_table):
        categories = [make_category(4, "Food - Groceries")]

        assert suggest_category_by_keywords("Walmart", categories, keyword_table) == 4

    def test_no_keyword(self, categories, keyword_table):
        assert suggest_category_by_keywords("Dentist", categories, keyword_table) is None

    def test_keyword_without_category_falls_through(self, keyword_table):
        # "walmart" points at groceries, but no such category exists
        categories = [make_category(7, "Restaurants")]

        assert suggest_category_by_keywords("Walmart Pizza", categories, keyword_table) == 7

    def test_trailing_space_keyword(self, categories, keyword_table):
        assert suggest_category_by_keywords("BP #9921", categories, keyword_table) == 2
        assert suggest_category_by_keywords("BPX", categories, keyword_table) is None


class TestFindBestCategory:
    """Tests for Classifier.find_best_category."""

    def test_group_rule_scenario(self, memory_store, classifier, categories):
        memory_store.map_merchant("WALMART #4521", 10)
        memory_store.upsert_rule(
            MerchantIdentity.for_group(10), 3, 4, 80, last_used=NOW
        )

        result = classifier.classify("WALMART #4521", categories)

        assert result.category_id == 3
        assert result.confidence == 0.8
        assert result.source == SOURCE_LEARNED

    def test_keyword_scenario(self, classifier, categories):
        result = classifier.classify("Joe's Pizza Shop", categories)

        assert result.category_id == 7
        assert result.confidence == 0.3
        assert result.source == SOURCE_KEYWORD

    def test_no_suggestion(self, classifier, categories):
        assert classifier.classify("Dr. Smith DDS", categories) is None

    def test_group_rule_picks_most_used(self, memory_store, classifier, categories):
        memory_store.map_merchant("TARGET 0042", 5)
        group = MerchantIdentity.for_group(5)
        memory_store.upsert_rule(group, 1, 2, 90, last_used=NOW)
        memory_store.upsert_rule(group, 3, 6, 60, last_used=NOW)

        result = classifier.classify("TARGET 0042", categories)

        assert result.category_id == 3
        assert result.confidence == 0.6

    def test_group_rule_beats_pattern_rule(self, memory_store, classifier, categories):
        memory_store.map_merchant("KROGER #1", 5)
        memory_store.upsert_rule(
            MerchantIdentity.for_group(5), 3, 1, 50, last_used=NOW
        )
        memory_store.upsert_rule(
            MerchantIdentity.for_pattern("KROGER #1"),
            1,
            9,
            100,
            last_used=NOW,
            normalized_pattern="kroger 1",
        )

        result = classifier.classify("KROGER #1", categories)

        assert result.category_id == 3

    def test_fuzzy_pattern_match(self, memory_store, classifier, categories):
        memory_store.upsert_rule(
            MerchantIdentity.for_pattern("Corner Deli 112"),
            3,
            5,
            90,
            last_used=NOW,
            normalized_pattern="corner deli 112",
        )

        result = classifier.classify("CORNER DELI 113", categories)

        assert result.category_id == 3
        assert result.source == SOURCE_LEARNED
        assert result.confidence == pytest.approx((1 - 1 / 15) * 0.9)

    def test_pattern_below_similarity_threshold_ignored(
        self, memory_store, classifier, categories
    ):
        memory_store.upsert_rule(
            MerchantIdentity.for_pattern("Corner Deli"),
            3,
            5,
            90,
            last_used=NOW,
            normalized_pattern="corner deli",
        )

        assert classifier.classify("Dr. Smith DDS", categories) is None

    def test_keyword_beats_weak_learned_rule(self, memory_store, classifier, categories):
        # Fresh pattern rule: confidence 30 -> 0.3, below the 0.5 threshold
        memory_store.upsert_rule(
            MerchantIdentity.for_pattern("KROGER FUEL"),
            3,
            1,
            30,
            last_used=NOW,
            normalized_pattern="kroger fuel",
        )

        result = classifier.classify("KROGER FUEL", categories)

        assert result.category_id == 1
        assert result.source == SOURCE_KEYWORD

    def test_weak_learned_rule_returned_without_keyword(
        self, memory_store, classifier, categories
    ):
        memory_store.upsert_rule(
            MerchantIdentity.for_pattern("Corner Deli"),
            3,
            1,
            30,
            last_used=NOW,
            normalized_pattern="corner deli",
        )

        result = classifier.classify("Corner Deli", categories)

        assert result.category_id == 3
        assert result.confidence == pytest.approx(0.3)
        assert result.source == SOURCE_LEARNED

    def test_never_returns_deleted_category(self, memory_store, classifier, categories):
        memory_store.map_merchant("WALMART #4521", 10)
        memory_store.upsert_rule(
            MerchantIdentity.for_group(10), 99, 10, 100, last_used=NOW
        )
        memory_store.upsert_rule(
            MerchantIdentity.for_pattern("Corner Deli"),
            98,
            10,
            100,
            last_used=NOW,
            normalized_pattern="corner deli",
        )

        walmart = classifier.classify("WALMART #4521", categories)
        deli = classifier.classify("Corner Deli", categories)

        # Stale group rule is skipped; keyword fallback still applies
        assert walmart.category_id == 1
        assert walmart.source == SOURCE_KEYWORD
        assert deli is None

    def test_result_always_in_valid_categories(self, memory_store, classifier):
        only_gas = [make_category(2, "Gas")]
        classifier.learn("KROGER #1", 1)
        classifier.learn("KROGER #1", 1)

        result = classifier.classify("KROGER #1", only_gas)

        assert result is None or result.category_id == 2


class TestLearn:
    """Tests for Classifier.learn and learn_many."""

    def test_new_pattern_rule(self, memory_store, classifier):
        rule = classifier.learn("Corner Deli #2", 3)

        assert rule.pattern == "Corner Deli #2"
        assert rule.normalized_pattern == "corner deli 2"
        assert rule.merchant_group_id is None
        assert rule.usage_count == 1
        assert rule.confidence_score == 30

    def test_new_group_rule(self, memory_store, classifier):
        memory_store.map_merchant("WALMART #4521", 10)

        rule = classifier.learn("WALMART #4521", 1)

        assert rule.merchant_group_id == 10
        assert rule.pattern is None
        assert rule.confidence_score == 50

    def test_repeat_strengthens_rule(self, memory_store, classifier):
        first = classifier.learn("Corner Deli", 3)
        second = classifier.learn("Corner Deli", 3)

        assert second.id == first.id
        assert second.usage_count == 2
        assert second.confidence_score == 35
        assert second.last_used >= first.last_used

    def test_confidence_monotone_and_capped(self, memory_store, classifier):
        previous = 0
        for _ in range(30):
            rule = classifier.learn("Corner Deli", 3)
            assert rule.confidence_score >= previous
            assert rule.confidence_score <= 100
            previous = rule.confidence_score

        assert rule.confidence_score == 100
        assert rule.usage_count == 30

    def test_two_classifiers_sharing_a_store_count_every_confirmation(
        self, memory_store, keyword_table
    ):
        classifiers = [
            Classifier(memory_store, keyword_table=keyword_table) for _ in range(2)
        ]
        classifiers[0].learn("Corner Deli", 3)

        def confirm(classifier):
            for _ in range(100):
                classifier.learn("Corner Deli", 3)

        threads = [threading.Thread(target=confirm, args=(c,)) for c in classifiers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        rule = memory_store.find_rule(MerchantIdentity.for_pattern("Corner Deli"), 3)
        assert rule.usage_count == 201
        assert rule.confidence_score == 100

    def test_identity_locks_do_not_grow(self, classifier):
        for number in range(500):
            classifier.learn(f"Corner Deli #{number}", 3)

        assert len(classifier._locks) == IDENTITY_LOCK_STRIPES
        identity = MerchantIdentity.for_pattern("Corner Deli #7")
        assert classifier._identity_lock(identity) is classifier._identity_lock(identity)

    def test_one_rule_per_identity_and_category(self, memory_store, classifier):
        memory_store.map_merchant("WALMART #1", 10)
        memory_store.map_merchant("WALMART #2", 10)
        for merchant, category_id in [
            ("WALMART #1", 1),
            ("WALMART #2", 1),
            ("WALMART #1", 3),
            ("Corner Deli", 3),
            ("Corner Deli", 3),
            ("Corner Deli", 1),
        ]:
            classifier.learn(merchant, category_id)

        rules = memory_store.find_all_rules()
        keys = [(rule.identity.key, rule.category_id) for rule in rules]

        assert len(keys) == len(set(keys)) == 4
        walmart_groceries = memory_store.find_rule(MerchantIdentity.for_group(10), 1)
        assert walmart_groceries.usage_count == 2

    def test_learned_rule_is_used_by_classify(self, classifier, categories):
        for _ in range(5):
            classifier.learn("Corner Deli", 3)

        result = classifier.classify("Corner Deli", categories)

        assert result.category_id == 3
        assert result.confidence == pytest.approx(0.5)

    def test_empty_merchant_rejected(self, classifier):
        with pytest.raises(ValueError):
            classifier.learn("   ", 3)

    def test_missing_context_writes_nothing(self, keyword_table):
        store = InMemoryRuleStore(None)
        classifier = Classifier(store, keyword_table=keyword_table)

        with pytest.raises(MissingContextError):
            classifier.learn("Corner Deli", 3)

        store.user_id = "late-user"
        assert store.find_all_rules() == []

    def test_learn_many_continues_after_failure(self, memory_store, classifier):
        original_reinforce = memory_store.reinforce_rule

        def flaky_reinforce(identity, category_id, **kwargs):
            if identity.pattern == "BROKEN":
                raise RuntimeError("store unavailable")
            return original_reinforce(identity, category_id, **kwargs)

        memory_store.reinforce_rule = flaky_reinforce

        learned = classifier.learn_many(
            [("Corner Deli", 3), ("BROKEN", 3), ("Shell 443", 2)]
        )

        assert learned == 2
        assert len(memory_store.find_all_rules()) == 2

    def test_learn_many_requires_context(self, keyword_table):
        classifier = Classifier(InMemoryRuleStore(""), keyword_table=keyword_table)

        with pytest.raises(MissingContextError):
            classifier.learn_many([("Corner Deli", 3)])


class TestReassignRuleCategory:
    """Tests for Classifier.reassign_rule_category."""

    def test_simple_reassign(self, memory_store, classifier):
        rule = classifier.learn("Corner Deli", 3)

        updated = classifier.reassign_rule_category(rule.id, 7)

        assert updated.id == rule.id
        assert updated.category_id == 7
        assert memory_store.find_rule(rule.identity, 3) is None

    def test_reassign_merges_duplicate(self, memory_store, classifier):
        to_move = classifier.learn("Corner Deli", 3)
        for _ in range(3):
            classifier.learn("Corner Deli", 3)
        keeper = classifier.learn("Corner Deli", 7)
        keeper = classifier.learn("Corner Deli", 7)

        merged = classifier.reassign_rule_category(to_move.id, 7)

        assert merged.id == keeper.id
        assert merged.category_id == 7
        assert merged.usage_count == 4 + 2
        # max(45, 35) + 5
        assert merged.confidence_score == 50
        assert memory_store.get_rule(to_move.id) is None
        assert len(memory_store.find_all_rules()) == 1

    def test_merge_confidence_capped(self, memory_store, classifier):
        identity = MerchantIdentity.for_pattern("Corner Deli")
        a = memory_store.upsert_rule(identity, 3, 10, 100, last_used=NOW)
        memory_store.upsert_rule(identity, 7, 10, 98, last_used=NOW)

        merged = classifier.reassign_rule_category(a.id, 7)

        assert merged.confidence_score == 100
        assert merged.usage_count == 20

    def test_unknown_rule(self, classifier):
        with pytest.raises(RuleNotFoundError):
            classifier.reassign_rule_category(404, 3)

    def test_invalid_category_writes_nothing(self, memory_store, classifier):
        rule = classifier.learn("Corner Deli", 3)

        with pytest.raises(ValueError):
            classifier.reassign_rule_category(rule.id, 99, valid_category_ids={3, 7})

        assert memory_store.get_rule(rule.id).category_id == 3

    def test_reassign_to_same_category_is_noop(self, memory_store, classifier):
        rule = classifier.learn("Corner Deli", 3)

        unchanged = classifier.reassign_rule_category(rule.id, 3)

        assert unchanged == rule
