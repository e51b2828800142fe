"""SQLite-backed rule store."""

from datetime import datetime
from typing import List, Optional
from models.category_rule import (
    CONFIDENCE_STEP,
    MAX_CONFIDENCE,
    CategoryRule,
    MerchantIdentity,
)
from rules.base import RuleNotFoundError, RuleStore

_RULE_SELECT_FIELDS = """id, category_id, confidence_score, usage_count, last_used,
       merchant_group_id, pattern, normalized_pattern"""


def _row_to_rule(row) -> CategoryRule:
    return CategoryRule(
        id=row[0],
        category_id=row[1],
        confidence_score=row[2],
        usage_count=row[3],
        last_used=datetime.fromisoformat(row[4]),
        merchant_group_id=row[5],
        pattern=row[6],
        normalized_pattern=row[7],
    )


def _conflict_target(identity: MerchantIdentity) -> str:
    if identity.is_group:
        return (
            "(user_id, merchant_group_id, category_id) "
            "WHERE merchant_group_id IS NOT NULL"
        )
    return "(user_id, pattern, category_id) WHERE pattern IS NOT NULL"


class SQLiteRuleStore(RuleStore):
    """Rule store over the category_rules and merchant_mappings tables.

    Uniqueness of (identity, category) is enforced by partial unique indexes.
    reinforce_rule increments counters inside one ON CONFLICT statement, so
    writers on separate connections cannot lose each other's updates.

    Args:
        db_manager: Database manager instance for database operations.
        user_id: Caller context; all queries are scoped to it.
    """

    def __init__(self, db_manager, user_id: Optional[str]):
        super().__init__(user_id)
        self.db_manager = db_manager

    def find_group_for_merchant(self, merchant: str) -> Optional[int]:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            row = conn.execute(
                "SELECT merchant_group_id FROM merchant_mappings "
                "WHERE user_id = ? AND pattern = ?",
                (user_id, merchant),
            ).fetchone()
            return row[0] if row else None

    def find_group_rules(self, merchant_group_id: int) -> List[CategoryRule]:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_RULE_SELECT_FIELDS} FROM category_rules "
                "WHERE user_id = ? AND merchant_group_id = ? ORDER BY id",
                (user_id, merchant_group_id),
            )
            return [_row_to_rule(row) for row in cursor.fetchall()]

    def find_pattern_rules(self) -> List[CategoryRule]:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_RULE_SELECT_FIELDS} FROM category_rules "
                "WHERE user_id = ? AND pattern IS NOT NULL ORDER BY id",
                (user_id,),
            )
            return [_row_to_rule(row) for row in cursor.fetchall()]

    def find_rule(
        self, identity: MerchantIdentity, category_id: int
    ) -> Optional[CategoryRule]:
        user_id = self.require_context()
        if identity.is_group:
            where, value = "merchant_group_id = ?", identity.merchant_group_id
        else:
            where, value = "pattern = ?", identity.pattern

        with self.db_manager.connect() as conn:
            row = conn.execute(
                f"SELECT {_RULE_SELECT_FIELDS} FROM category_rules "
                f"WHERE user_id = ? AND {where} AND category_id = ?",
                (user_id, value, category_id),
            ).fetchone()
            return _row_to_rule(row) if row else None

    def get_rule(self, rule_id: int) -> Optional[CategoryRule]:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            row = conn.execute(
                f"SELECT {_RULE_SELECT_FIELDS} FROM category_rules "
                "WHERE user_id = ? AND id = ?",
                (user_id, rule_id),
            ).fetchone()
            return _row_to_rule(row) if row else None

    def find_all_rules(self) -> List[CategoryRule]:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_RULE_SELECT_FIELDS} FROM category_rules "
                "WHERE user_id = ? ORDER BY usage_count DESC, id",
                (user_id,),
            )
            return [_row_to_rule(row) for row in cursor.fetchall()]

    def upsert_rule(
        self,
        identity: MerchantIdentity,
        category_id: int,
        usage_count: int,
        confidence_score: int,
        last_used: datetime,
        normalized_pattern: Optional[str] = None,
    ) -> CategoryRule:
        user_id = self.require_context()
        conflict = _conflict_target(identity)

        with self.db_manager.connect() as conn:
            conn.execute(
                f"""
                INSERT INTO category_rules (
                    user_id, merchant_group_id, pattern, normalized_pattern,
                    category_id, confidence_score, usage_count, last_used
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT {conflict} DO UPDATE SET
                    confidence_score = excluded.confidence_score,
                    usage_count = excluded.usage_count,
                    last_used = excluded.last_used
                """,
                (
                    user_id,
                    identity.merchant_group_id,
                    identity.pattern,
                    normalized_pattern,
                    category_id,
                    confidence_score,
                    usage_count,
                    last_used.isoformat(),
                ),
            )
            conn.commit()

        return self.find_rule(identity, category_id)

    def reinforce_rule(
        self,
        identity: MerchantIdentity,
        category_id: int,
        initial_confidence: int,
        last_used: datetime,
        normalized_pattern: Optional[str] = None,
    ) -> CategoryRule:
        user_id = self.require_context()
        conflict = _conflict_target(identity)

        with self.db_manager.connect() as conn:
            conn.execute(
                f"""
                INSERT INTO category_rules (
                    user_id, merchant_group_id, pattern, normalized_pattern,
                    category_id, confidence_score, usage_count, last_used
                ) VALUES (?, ?, ?, ?, ?, ?, 1, ?)
                ON CONFLICT {conflict} DO UPDATE SET
                    usage_count = category_rules.usage_count + 1,
                    confidence_score = MIN(category_rules.confidence_score + ?, ?),
                    last_used = excluded.last_used
                """,
                (
                    user_id,
                    identity.merchant_group_id,
                    identity.pattern,
                    normalized_pattern,
                    category_id,
                    initial_confidence,
                    last_used.isoformat(),
                    CONFIDENCE_STEP,
                    MAX_CONFIDENCE,
                ),
            )
            conn.commit()

        return self.find_rule(identity, category_id)

    def update_rule_category(self, rule_id: int, category_id: int) -> None:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "UPDATE category_rules SET category_id = ? WHERE user_id = ? AND id = ?",
                (category_id, user_id, rule_id),
            )
            conn.commit()

            if cursor.rowcount == 0:
                raise RuleNotFoundError(f"Rule with ID {rule_id} not found")

    def merge_and_delete(
        self,
        keep_rule_id: int,
        delete_rule_id: int,
        usage_count: int,
        confidence_score: int,
        last_used: datetime,
    ) -> None:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE category_rules
                    SET usage_count = ?, confidence_score = ?, last_used = ?
                    WHERE user_id = ? AND id = ?
                    """,
                    (
                        usage_count,
                        confidence_score,
                        last_used.isoformat(),
                        user_id,
                        keep_rule_id,
                    ),
                )
                if cursor.rowcount == 0:
                    raise RuleNotFoundError(f"Rule with ID {keep_rule_id} not found")
                conn.execute(
                    "DELETE FROM category_rules WHERE user_id = ? AND id = ?",
                    (user_id, delete_rule_id),
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def delete_rule(self, rule_id: int) -> bool:
        user_id = self.require_context()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM category_rules WHERE user_id = ? AND id = ?",
                (user_id, rule_id),
            )
            conn.commit()
            return cursor.rowcount > 0
