"""Service layer for handling expense-related logic."""
import asyncio
import logging
import math
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection  # Type hint for collection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from models.expense import (
    Expense,
    ExpenseCreate,
    ExpenseListQuery,
    ExpenseUpdate,
    PaginatedExpenses,
    Pagination,
)
from services.errors import StorageError

logger = logging.getLogger(__name__)

# Owner reference. Present on every document, never on an Expense model.
OWNER_FIELD = "user_id"


# --- Document conversion ---

def to_db_datetime(value: datetime) -> datetime:
    """Converts to the naive UTC datetime MongoDB stores, truncated to milliseconds."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def from_db_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def document_to_expense(doc: Mapping[str, Any]) -> Expense:
    """Maps a stored document to an Expense, dropping the owner reference."""
    data = dict(doc)
    data.pop(OWNER_FIELD, None)
    data["id"] = str(data.pop("_id"))
    for key in ("date", "created_at"):
        if isinstance(data.get(key), datetime):
            data[key] = from_db_datetime(data[key])
    return Expense(**data)


def _storage_error(action: str, e: Exception) -> StorageError:
    logger.error(f"Database error while trying to {action}: {e!r}")
    return StorageError(f"Failed to {action}", cause=e)


# --- Database Interaction Functions (Depend on collection passed from route) ---

async def create_expense(collection: AsyncIOMotorCollection, owner_id: str, data: ExpenseCreate) -> Expense:
    """Inserts a new expense for the owner and returns the stored record."""
    document = {
        "_id": str(uuid.uuid4()),
        OWNER_FIELD: owner_id,
        "name": data.name,
        "amount": data.amount,
        "date": to_db_datetime(data.date),
        "description": data.description,
        "created_at": to_db_datetime(datetime.now(timezone.utc)),
    }
    try:
        await collection.insert_one(document)
    except PyMongoError as e:
        raise _storage_error("create expense", e) from e
    logger.info(f"Created expense {document['_id']} for owner {owner_id}.")
    return document_to_expense(document)


async def get_expense_by_id(collection: AsyncIOMotorCollection, owner_id: str, expense_id: str) -> Optional[Expense]:
    """Returns the expense, or None when it does not exist for this owner."""
    try:
        document = await collection.find_one({"_id": expense_id, OWNER_FIELD: owner_id})
    except PyMongoError as e:
        raise _storage_error("retrieve expense", e) from e
    if document is None:
        return None
    return document_to_expense(document)


async def update_expense(
    collection: AsyncIOMotorCollection,
    owner_id: str,
    expense_id: str,
    patch: ExpenseUpdate,
) -> Optional[Expense]:
    """
    Applies only the fields present in ``patch``. Matching on both id and
    owner means another owner's row is reported as missing, not updated.
    """
    changes = patch.changes()
    if "date" in changes:
        changes["date"] = to_db_datetime(changes["date"])
    try:
        document = await collection.find_one_and_update(
            {"_id": expense_id, OWNER_FIELD: owner_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise _storage_error("update expense", e) from e
    if document is None:
        return None
    logger.info(f"Updated expense {expense_id} fields {sorted(changes)}.")
    return document_to_expense(document)


async def delete_expense(collection: AsyncIOMotorCollection, owner_id: str, expense_id: str) -> Optional[bool]:
    """Deletes the expense. Returns True when removed, None when nothing matched."""
    logger.warning(f"Deleting expense {expense_id} for owner {owner_id}.")
    try:
        result = await collection.delete_one({"_id": expense_id, OWNER_FIELD: owner_id})
    except PyMongoError as e:
        raise _storage_error("delete expense", e) from e
    if result.deleted_count == 0:
        return None
    return True


def build_list_filter(owner_id: str, query: ExpenseListQuery) -> Dict[str, Any]:
    """
    Owner equality plus the optional date range. The end bound is moved to
    the start of the following day so the whole ``end_date`` is included.
    """
    list_filter: Dict[str, Any] = {OWNER_FIELD: owner_id}
    date_range = {}
    if query.start_date:
        date_range["$gte"] = datetime.combine(query.start_date, time.min)
    # No upper bound exists past the last representable day
    if query.end_date and query.end_date < date.max:
        date_range["$lt"] = datetime.combine(query.end_date + timedelta(days=1), time.min)
    if date_range:
        list_filter["date"] = date_range
    return list_filter


def build_sort(query: ExpenseListQuery) -> List[Tuple[str, int]]:
    direction = ASCENDING if query.order == "asc" else DESCENDING
    # _id breaks ties so rows with equal keys never straddle two pages
    return [(query.sort_by, direction), ("_id", direction)]


async def list_expenses(
    collection: AsyncIOMotorCollection,
    owner_id: str,
    query: ExpenseListQuery,
) -> PaginatedExpenses:
    """Fetches one page of the owner's expenses together with the exact total count."""
    list_filter = build_list_filter(owner_id, query)
    sort = build_sort(query)
    offset = (query.page - 1) * query.limit
    logger.info(
        f"Listing expenses for owner {owner_id}: page {query.page}, limit {query.limit}, "
        f"sort {query.sort_by} {query.order}, range {query.start_date}..{query.end_date}"
    )
    try:
        cursor = collection.find(list_filter).sort(sort).skip(offset).limit(query.limit)
        total_items, documents = await asyncio.gather(
            collection.count_documents(list_filter),
            cursor.to_list(length=query.limit),
        )
    except PyMongoError as e:
        raise _storage_error("retrieve expenses", e) from e

    return PaginatedExpenses(
        data=[document_to_expense(doc) for doc in documents],
        pagination=Pagination(
            page=query.page,
            limit=query.limit,
            total_items=total_items,
            total_pages=math.ceil(total_items / query.limit),
        ),
    )
