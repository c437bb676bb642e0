"""Dashboard aggregates computed from an owner's expenses."""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from models.dashboard import DashboardData, MonthlySummary, TopExpense
from services.errors import StorageError
from services.expenses_service import OWNER_FIELD, from_db_datetime

logger = logging.getLogger(__name__)

TOP_EXPENSES_LIMIT = 5
SUMMARY_MONTHS = 12


def _cents(value: Any) -> float:
    return float(Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def month_start(year: int, month: int) -> datetime:
    """First instant of a month given a possibly out-of-range month number."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1)


def month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def current_month_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """Naive UTC [start, end) of the month containing ``now``."""
    return month_start(now.year, now.month), month_start(now.year, now.month + 1)


def summarize_months(expenses: Iterable[Mapping[str, Any]], now: datetime) -> List[MonthlySummary]:
    """
    Buckets expenses by ``YYYY-MM`` over the trailing 12 months (current
    month included). Months without expenses are left out; the result is
    ordered by month ascending.
    """
    window_start = month_start(now.year, now.month - (SUMMARY_MONTHS - 1))
    window_end = month_start(now.year, now.month + 1)
    totals: Dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        expense_date = expense.get("date")
        if not isinstance(expense_date, datetime):
            continue
        if expense_date.tzinfo is not None:
            expense_date = expense_date.astimezone(timezone.utc).replace(tzinfo=None)
        if window_start <= expense_date < window_end:
            totals[month_key(expense_date)] += Decimal(str(expense.get("amount") or 0))
    return [
        MonthlySummary(month=key, total=_cents(total))
        for key, total in sorted(totals.items())
        if total > 0
    ]


async def _sum_amounts(collection: AsyncIOMotorCollection, match: Dict[str, Any]) -> float:
    pipeline = [
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
    ]
    rows = await collection.aggregate(pipeline).to_list(length=1)
    return _cents(rows[0]["total"]) if rows else 0.0


async def _top_expenses(collection: AsyncIOMotorCollection, owner_id: str) -> List[Dict[str, Any]]:
    cursor = (
        collection.find({OWNER_FIELD: owner_id}, {"name": 1, "amount": 1, "date": 1})
        .sort([("amount", DESCENDING), ("_id", ASCENDING)])
        .limit(TOP_EXPENSES_LIMIT)
    )
    return await cursor.to_list(length=TOP_EXPENSES_LIMIT)


async def _amounts_by_date(collection: AsyncIOMotorCollection, owner_id: str) -> List[Dict[str, Any]]:
    cursor = collection.find({OWNER_FIELD: owner_id}, {"amount": 1, "date": 1}).sort("date", ASCENDING)
    return await cursor.to_list(length=None)


async def get_dashboard_data(
    collection: AsyncIOMotorCollection,
    owner_id: str,
    now: Optional[datetime] = None,
) -> DashboardData:
    """
    Runs four independent queries concurrently and folds them into the
    dashboard summary. If any query fails the whole call fails with
    StorageError; no partial aggregate is returned.

    Month boundaries are UTC calendar months.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    start_of_month, start_of_next_month = current_month_bounds(now)

    logger.info(f"Building dashboard for owner {owner_id} (month {month_key(now)}).")
    try:
        total, current_month, top_documents, dated_amounts = await asyncio.gather(
            _sum_amounts(collection, {OWNER_FIELD: owner_id}),
            _sum_amounts(collection, {
                OWNER_FIELD: owner_id,
                "date": {"$gte": start_of_month, "$lt": start_of_next_month},
            }),
            _top_expenses(collection, owner_id),
            _amounts_by_date(collection, owner_id),
        )
    except PyMongoError as e:
        logger.error(f"Database error while building dashboard for owner {owner_id}: {e!r}")
        raise StorageError("Failed to retrieve dashboard data", cause=e) from e

    top_expenses = [
        TopExpense(
            id=str(doc["_id"]),
            name=doc["name"],
            amount=doc["amount"],
            date=from_db_datetime(doc["date"]),
        )
        for doc in top_documents
    ]
    return DashboardData(
        total_expenses=total,
        current_month_expenses=current_month,
        top_5_expenses=top_expenses,
        monthly_summary=summarize_months(dated_amounts, now),
    )
