"""Monthly funding records and allocation bookkeeping."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Union
from dateutil.parser import isoparse
from models.allocation import AllocationResult, FundingProgress
from logger import get_logger

logger = get_logger()


def month_key(month: Union[str, date]) -> str:
    """Normalize a date or ISO month/date string to 'YYYY-MM'."""
    if not isinstance(month, (date, datetime)):
        month = isoparse(month)
    return f"{month.year:04d}-{month.month:02d}"


class FundingService:
    """Service tracking how much each category received per month."""

    def __init__(self, db_manager):
        """Initialize the funding service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def record_funding(
        self,
        category_id: int,
        month: Union[str, date],
        amount: Decimal,
        target: Decimal = Decimal("0"),
    ) -> FundingProgress:
        """Add amount to a category's funding for a month.

        Args:
            category_id: Category that received the money.
            month: Month being funded.
            amount: Amount received.
            target: The category's monthly target at the time of funding.

        Returns:
            Funding progress for the month after the update.
        """
        with self.db_manager.connect() as conn:
            progress = self._record(conn, category_id, month_key(month), amount, target)
            conn.commit()
        return progress

    def get_funding_progress(self, month: Union[str, date]) -> Dict[int, FundingProgress]:
        """Get funding progress for every category funded in a month.

        Returns:
            Dictionary of category id -> FundingProgress. Categories with no
            funding record for the month are absent.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT category_id, funded_amount, target_amount "
                "FROM monthly_funding WHERE month = ?",
                (month_key(month),),
            )
            return {
                row[0]: FundingProgress(funded=Decimal(row[1]), target=Decimal(row[2]))
                for row in cursor.fetchall()
            }

    def get_ytd_funded(self, category_id: int, month: Union[str, date]) -> Decimal:
        """Total funded to a category from January through the given month."""
        key = month_key(month)
        year_start = f"{key[:4]}-01"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT funded_amount FROM monthly_funding "
                "WHERE category_id = ? AND month BETWEEN ? AND ?",
                (category_id, year_start, key),
            )
            return sum((Decimal(row[0]) for row in cursor.fetchall()), Decimal("0"))

    def apply_allocation(
        self, result: AllocationResult, month: Union[str, date]
    ) -> int:
        """Persist an allocation run: raise balances and record funding.

        Every plan with a positive allocation increases its category's
        current_balance and funded amount for the month. All updates happen in
        one database transaction; on error nothing is written.

        Returns:
            Number of categories funded.
        """
        key = month_key(month)
        funded = [plan for plan in result.allocations if plan.allocated_amount > 0]
        if not funded:
            return 0

        with self.db_manager.connect() as conn:
            try:
                for plan in funded:
                    row = conn.execute(
                        "SELECT current_balance FROM categories WHERE id = ?",
                        (plan.category_id,),
                    ).fetchone()
                    if row is None:
                        raise Exception(f"Category with ID {plan.category_id} not found")

                    new_balance = Decimal(row[0]) + plan.allocated_amount
                    conn.execute(
                        "UPDATE categories SET current_balance = ? WHERE id = ?",
                        (str(new_balance), plan.category_id),
                    )
                    self._record(
                        conn,
                        plan.category_id,
                        key,
                        plan.allocated_amount,
                        plan.target_amount,
                    )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.info(
            f"Applied allocation for {key}: {len(funded)} categories, "
            f"{result.total_allocated} allocated"
        )
        return len(funded)

    def _record(
        self, conn, category_id: int, key: str, amount: Decimal, target: Decimal
    ) -> FundingProgress:
        row = conn.execute(
            "SELECT funded_amount FROM monthly_funding WHERE category_id = ? AND month = ?",
            (category_id, key),
        ).fetchone()

        if row:
            funded = Decimal(row[0]) + amount
            conn.execute(
                """
                UPDATE monthly_funding SET funded_amount = ?, target_amount = ?
                WHERE category_id = ? AND month = ?
                """,
                (str(funded), str(target), category_id, key),
            )
        else:
            funded = amount
            conn.execute(
                """
                INSERT INTO monthly_funding (category_id, month, funded_amount, target_amount)
                VALUES (?, ?, ?, ?)
                """,
                (category_id, key, str(funded), str(target)),
            )

        return FundingProgress(funded=funded, target=target)
