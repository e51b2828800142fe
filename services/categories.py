"""Category service for database operations."""

from decimal import Decimal
from typing import List, Optional
from models.category import CATEGORY_TYPES, DEFAULT_PRIORITY, MONTHLY_EXPENSE, Category

_CATEGORY_SELECT_FIELDS = """id, name, description, parent_id, category_type, priority,
       monthly_amount, monthly_target, annual_target, target_balance,
       current_balance, is_system, is_buffer, is_goal"""


def _to_text(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _to_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _row_to_category(row) -> Category:
    return Category(
        id=row[0],
        name=row[1],
        description=row[2],
        parent_id=row[3],
        category_type=row[4],
        priority=row[5],
        monthly_amount=Decimal(row[6]),
        monthly_target=_to_decimal(row[7]),
        annual_target=_to_decimal(row[8]),
        target_balance=_to_decimal(row[9]),
        current_balance=Decimal(row[10]),
        is_system=bool(row[11]),
        is_buffer=bool(row[12]),
        is_goal=bool(row[13]),
    )


class CategoryService:
    """Service for managing envelope categories."""

    def __init__(self, db_manager):
        """Initialize the category service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[Category]:
        """Get all categories from the database.

        Returns:
            List of Category objects, ordered by name.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories ORDER BY name"
            )
            return [_row_to_category(row) for row in cursor.fetchall()]

    def find(self, category_id: int) -> Optional[Category]:
        """Get a single category by ID.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            row = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE id = ?",
                (category_id,),
            ).fetchone()
            return _row_to_category(row) if row else None

    def find_by_name(self, name: str) -> Optional[Category]:
        """Get a single category by name (case-sensitive).

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            row = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE name = ?",
                (name,),
            ).fetchone()
            return _row_to_category(row) if row else None

    def create(
        self,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[int] = None,
        category_type: str = MONTHLY_EXPENSE,
        priority: int = DEFAULT_PRIORITY,
        monthly_amount: Decimal = Decimal("0"),
        monthly_target: Optional[Decimal] = None,
        annual_target: Optional[Decimal] = None,
        target_balance: Optional[Decimal] = None,
        current_balance: Decimal = Decimal("0"),
        is_system: bool = False,
        is_buffer: bool = False,
        is_goal: bool = False,
    ) -> Category:
        """Create a new category.

        Args:
            name: Category name (should be unique).
            description: Optional description of the category.
            parent_id: Optional parent category ID for hierarchical categories.
            category_type: monthly_expense, accumulation or target_balance.
            priority: 1 (highest) to 10 (lowest).
            monthly_amount: Plain monthly target.
            monthly_target: Optional override of monthly_amount.
            annual_target: Yearly goal (accumulation).
            target_balance: Balance to reach (target_balance).
            current_balance: Opening envelope balance.
            is_system: Exclude from allocation as a system category.
            is_buffer: Exclude from allocation as the income buffer.
            is_goal: Exclude from allocation as a savings goal.

        Returns:
            The created Category object with id populated.

        Raises:
            ValueError: If category_type or priority is invalid.
            sqlite3.IntegrityError: If the name already exists.
        """
        if category_type not in CATEGORY_TYPES:
            raise ValueError(f"Unknown category type: {category_type}")
        if not 1 <= priority <= 10:
            raise ValueError(f"Priority must be between 1 and 10, got {priority}")

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO categories (
                    name, description, parent_id, category_type, priority,
                    monthly_amount, monthly_target, annual_target, target_balance,
                    current_balance, is_system, is_buffer, is_goal
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    description,
                    parent_id,
                    category_type,
                    priority,
                    str(monthly_amount),
                    _to_text(monthly_target),
                    _to_text(annual_target),
                    _to_text(target_balance),
                    str(current_balance),
                    int(is_system),
                    int(is_buffer),
                    int(is_goal),
                ),
            )
            conn.commit()
            category_id = cursor.lastrowid

        return self.find(category_id)

    def update(
        self,
        category_id: int,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[int] = None,
    ) -> Category:
        """Update a category's name, description and parent.

        Returns:
            The updated Category object.

        Raises:
            Exception: If category not found or update fails.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "UPDATE categories SET name = ?, description = ?, parent_id = ? WHERE id = ?",
                (name, description, parent_id, category_id),
            )
            conn.commit()

            if cursor.rowcount == 0:
                raise Exception(f"Category with ID {category_id} not found")

        return self.find(category_id)

    def adjust_balance(self, category_id: int, amount: Decimal) -> Category:
        """Add amount (negative for spending) to a category's current balance.

        Raises:
            Exception: If category not found.
        """
        category = self.find(category_id)
        if category is None:
            raise Exception(f"Category with ID {category_id} not found")

        new_balance = category.current_balance + amount
        with self.db_manager.connect() as conn:
            conn.execute(
                "UPDATE categories SET current_balance = ? WHERE id = ?",
                (str(new_balance), category_id),
            )
            conn.commit()

        category.current_balance = new_balance
        return category

    def delete(self, category_id: int) -> bool:
        """Delete a category by ID.

        Rules and funding records pointing at the category are removed with it.

        Returns:
            True if category was deleted, False if not found.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            conn.commit()
            return cursor.rowcount > 0
