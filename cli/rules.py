#!/usr/bin/env python3

import sys
import csv
from pathlib import Path
from rules.base import RuleNotFoundError
from logger import get_logger

logger = get_logger()


def cmd_list(args, services):
    """List learned category rules, most used first."""
    rules = services.classifier.list_rules()

    if not rules:
        logger.info("No rules learned yet.")
        return

    category_names = {c.id: c.name for c in services.categories.find_all()}
    group_names = {g.id: g.display_name for g in services.merchant_groups.find_all()}

    logger.info("\nCategory rules:")
    logger.info("=" * 80)
    for rule in rules:
        if rule.merchant_group_id is not None:
            merchant = f"[group] {group_names.get(rule.merchant_group_id, rule.merchant_group_id)}"
        else:
            merchant = rule.pattern
        logger.info(
            f"ID: {rule.id}  {merchant} -> "
            f"{category_names.get(rule.category_id, rule.category_id)}  "
            f"(used {rule.usage_count}x, confidence {rule.confidence_score})"
        )

    logger.info(f"\nTotal rules: {len(rules)}")


def cmd_classify(args, services):
    """Suggest a category for a merchant description."""
    categories = services.categories.find_all()
    result = services.classifier.classify(args.merchant, categories)

    if result is None:
        logger.info(f"No suggestion for '{args.merchant}'.")
        return

    category = next(c for c in categories if c.id == result.category_id)
    logger.info(
        f"'{args.merchant}' -> {category.name} (ID: {category.id}), "
        f"confidence {result.confidence:.2f} [{result.source}]"
    )


def cmd_learn(args, services):
    """Confirm that a merchant description belongs to a category."""
    if services.categories.find(args.category_id) is None:
        logger.error(f"Category with ID {args.category_id} not found.")
        sys.exit(1)

    rule = services.classifier.learn(args.merchant, args.category_id)
    logger.info(
        f"✓ Rule {rule.id}: used {rule.usage_count}x, confidence {rule.confidence_score}"
    )


def cmd_learn_csv(args, services):
    """Learn from a CSV of confirmed categorizations (merchant,category_id)."""
    csv_path = Path(args.csv_file)
    if not csv_path.exists():
        logger.error(f"File not found: {args.csv_file}")
        sys.exit(1)

    pairs = []
    with open(csv_path, "r", newline="") as f:
        reader = csv.DictReader(f)
        missing = {"merchant", "category_id"} - set(reader.fieldnames or [])
        if missing:
            logger.error(f"CSV is missing columns: {', '.join(sorted(missing))}")
            sys.exit(1)

        for line_number, row in enumerate(reader, start=2):
            try:
                pairs.append((row["merchant"], int(row["category_id"])))
            except (TypeError, ValueError):
                logger.warning(f"Line {line_number}: invalid category_id, skipped")

    learned = services.classifier.learn_many(pairs)
    logger.info(f"✓ Learned {learned} of {len(pairs)} categorizations")


def cmd_reassign(args, services):
    """Point a rule at another category."""
    valid_ids = {c.id for c in services.categories.find_all()}
    try:
        rule = services.classifier.reassign_rule_category(
            args.rule_id, args.category_id, valid_ids
        )
    except (RuleNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"✓ Rule {rule.id} now points at category {rule.category_id}")


def cmd_delete(args, services):
    """Delete a rule by ID."""
    if services.classifier.delete_rule(args.rule_id):
        logger.info(f"✓ Rule {args.rule_id} deleted.")
    else:
        logger.error(f"Rule with ID {args.rule_id} not found.")
        sys.exit(1)


def setup_parser(subparsers):
    """Setup rules subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "rules",
        help="Classify merchants and manage learned rules",
        description="Suggest categories for merchants and teach the classifier",
    )

    rules_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available rule commands",
        dest="subcommand",
        required=True,
    )

    list_parser = rules_subparsers.add_parser("list", help="List learned rules")
    list_parser.set_defaults(func=cmd_list)

    classify_parser = rules_subparsers.add_parser(
        "classify", help="Suggest a category for a merchant"
    )
    classify_parser.add_argument("merchant", help="Raw transaction description")
    classify_parser.set_defaults(func=cmd_classify)

    learn_parser = rules_subparsers.add_parser(
        "learn", help="Confirm a merchant's category"
    )
    learn_parser.add_argument("merchant", help="Raw transaction description")
    learn_parser.add_argument("category_id", type=int)
    learn_parser.set_defaults(func=cmd_learn)

    learn_csv_parser = rules_subparsers.add_parser(
        "learn-csv", help="Learn from a CSV with merchant,category_id columns"
    )
    learn_csv_parser.add_argument("csv_file", help="Path to CSV file")
    learn_csv_parser.set_defaults(func=cmd_learn_csv)

    reassign_parser = rules_subparsers.add_parser(
        "reassign", help="Point a rule at another category"
    )
    reassign_parser.add_argument("rule_id", type=int)
    reassign_parser.add_argument("category_id", type=int)
    reassign_parser.set_defaults(func=cmd_reassign)

    delete_parser = rules_subparsers.add_parser("delete", help="Delete a rule")
    delete_parser.add_argument("rule_id", type=int)
    delete_parser.set_defaults(func=cmd_delete)
