"""Merchant group service for database operations."""

from typing import List, Optional
from models.merchant_group import MerchantGroup, MerchantMapping
from rules.base import MissingContextError


class MerchantGroupService:
    """Service for managing merchant groups and description mappings.

    Groups belong to a user; every query is scoped to user_id.
    """

    def __init__(self, db_manager, user_id: Optional[str]):
        """Initialize the merchant group service.

        Args:
            db_manager: Database manager instance for database operations.
            user_id: Caller context.
        """
        self.db_manager = db_manager
        self.user_id = user_id

    def _require_user(self) -> str:
        if not self.user_id:
            raise MissingContextError("No user context available for merchant groups")
        return self.user_id

    def find_all(self) -> List[MerchantGroup]:
        """Get all merchant groups, ordered by display name."""
        user_id = self._require_user()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT id, display_name FROM merchant_groups "
                "WHERE user_id = ? ORDER BY display_name",
                (user_id,),
            )
            return [MerchantGroup(id=row[0], display_name=row[1]) for row in cursor]

    def find(self, group_id: int) -> Optional[MerchantGroup]:
        """Get a merchant group by ID, or None."""
        user_id = self._require_user()
        with self.db_manager.connect() as conn:
            row = conn.execute(
                "SELECT id, display_name FROM merchant_groups WHERE user_id = ? AND id = ?",
                (user_id, group_id),
            ).fetchone()
            return MerchantGroup(id=row[0], display_name=row[1]) if row else None

    def create(self, display_name: str) -> MerchantGroup:
        """Create a merchant group.

        Raises:
            sqlite3.IntegrityError: If the display name is already used.
        """
        user_id = self._require_user()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO merchant_groups (user_id, display_name) VALUES (?, ?)",
                (user_id, display_name),
            )
            conn.commit()
            return MerchantGroup(id=cursor.lastrowid, display_name=display_name)

    def delete(self, group_id: int) -> bool:
        """Delete a group along with its mappings and rules.

        Returns:
            True if the group was deleted, False if not found.
        """
        user_id = self._require_user()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM merchant_groups WHERE user_id = ? AND id = ?",
                (user_id, group_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def map_merchant(self, pattern: str, group_id: int) -> MerchantMapping:
        """Map a raw description to a group, replacing any previous mapping.

        Raises:
            Exception: If the group does not exist.
        """
        user_id = self._require_user()
        if self.find(group_id) is None:
            raise Exception(f"Merchant group with ID {group_id} not found")

        with self.db_manager.connect() as conn:
            conn.execute(
                """
                INSERT INTO merchant_mappings (user_id, pattern, merchant_group_id)
                VALUES (?, ?, ?)
                ON CONFLICT (user_id, pattern) DO UPDATE SET
                    merchant_group_id = excluded.merchant_group_id
                """,
                (user_id, pattern, group_id),
            )
            conn.commit()
            row = conn.execute(
                "SELECT id FROM merchant_mappings WHERE user_id = ? AND pattern = ?",
                (user_id, pattern),
            ).fetchone()

        return MerchantMapping(id=row[0], pattern=pattern, merchant_group_id=group_id)

    def find_mappings(self, group_id: int) -> List[MerchantMapping]:
        """Get every description mapped to a group."""
        user_id = self._require_user()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT id, pattern, merchant_group_id FROM merchant_mappings "
                "WHERE user_id = ? AND merchant_group_id = ? ORDER BY pattern",
                (user_id, group_id),
            )
            return [
                MerchantMapping(id=row[0], pattern=row[1], merchant_group_id=row[2])
                for row in cursor
            ]

    def unmap_merchant(self, pattern: str) -> bool:
        """Remove a description from its group.

        Returns:
            True if a mapping was removed.
        """
        user_id = self._require_user()
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM merchant_mappings WHERE user_id = ? AND pattern = ?",
                (user_id, pattern),
            )
            conn.commit()
            return cursor.rowcount > 0
