"""Pydantic models for Expense data"""
import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, field_validator, model_validator

MAX_AMOUNT = 999999.99
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_PAGE_SIZE = 100

_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})$"
)
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _check_amount(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Amount must be a number")
    if not math.isfinite(value):
        raise ValueError("Amount must be a number")
    if value <= 0:
        raise ValueError("Amount must be greater than 0")
    if value > MAX_AMOUNT:
        raise ValueError("Amount must not exceed 999,999.99")
    if Decimal(str(value)).as_tuple().exponent < -2:
        raise ValueError("Amount must have at most 2 decimal places")
    return float(value)


def _clean_name(value):
    if not isinstance(value, str):
        raise ValueError("Name must be a string")
    value = value.strip()
    if not value:
        raise ValueError("Name cannot be empty")
    if len(value) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must not exceed {MAX_NAME_LENGTH} characters")
    return value


def _parse_timestamp(value):
    if not isinstance(value, str):
        raise ValueError("Date must be a string")
    if not _TIMESTAMP_RE.match(value):
        raise ValueError("Date must be a valid ISO 8601 datetime string")
    # Seconds and an explicit zone (Z or an offset) are required
    try:
        return datetime.fromisoformat(value).astimezone(timezone.utc)
    except (ValueError, OverflowError):
        raise ValueError("Date must be a valid ISO 8601 datetime string")


def _clean_description(value):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Description must be a string")
    value = value.strip()
    if len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Description must not exceed {MAX_DESCRIPTION_LENGTH} characters")
    return value


Amount = Annotated[float, BeforeValidator(_check_amount)]
Name = Annotated[str, BeforeValidator(_clean_name)]
Timestamp = Annotated[datetime, BeforeValidator(_parse_timestamp)]
Description = Annotated[Optional[str], BeforeValidator(_clean_description)]


class ExpenseCreate(BaseModel):
    """Body of a create request, normalized."""
    amount: Amount
    name: Name
    date: Timestamp
    description: Description = None


class ExpenseUpdate(BaseModel):
    """
    Partial update. Only the fields the client actually sent are applied;
    ``description`` may be sent as null to clear it.
    """
    amount: Amount = None
    name: Name = None
    date: Timestamp = None
    description: Description = None

    @model_validator(mode="after")
    def check_any_field_set(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ExpenseListQuery(BaseModel):
    """Query string of the list endpoint with defaults applied."""
    page: int = 1
    limit: int = 10
    sort_by: Literal["date", "amount"] = "date"
    order: Literal["asc", "desc"] = "desc"
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("page", mode="before")
    @classmethod
    def parse_page(cls, value):
        if value is None or value == "":
            return 1
        page = _parse_int(value, "Page must be a positive integer")
        if page < 1:
            raise ValueError("Page must be a positive integer")
        return page

    @field_validator("limit", mode="before")
    @classmethod
    def parse_limit(cls, value):
        if value is None or value == "":
            return 10
        limit = _parse_int(value, "Limit must be a positive integer")
        if limit < 1:
            raise ValueError("Limit must be at least 1")
        if limit > MAX_PAGE_SIZE:
            raise ValueError(f"Limit must not exceed {MAX_PAGE_SIZE}")
        return limit

    @field_validator("sort_by", mode="before")
    @classmethod
    def check_sort_by(cls, value):
        if value not in ("date", "amount"):
            raise ValueError('Sort by must be either "date" or "amount"')
        return value

    @field_validator("order", mode="before")
    @classmethod
    def check_order(cls, value):
        if value not in ("asc", "desc"):
            raise ValueError('Order must be either "asc" or "desc"')
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_bound(cls, value, info):
        if value is None or isinstance(value, date):
            return value
        label = "Start date" if info.field_name == "start_date" else "End date"
        if not isinstance(value, str) or not _DATE_RE.match(value):
            raise ValueError(f"{label} must be in YYYY-MM-DD format")
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValueError(f"{label} must be a valid calendar date")


def _parse_int(value, message: str) -> int:
    if isinstance(value, bool):
        raise ValueError(message)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    raise ValueError(message)


class Expense(BaseModel):
    """
    A stored expense as returned to API clients. The owner reference is
    never part of this model.
    """
    id: str
    name: str
    amount: float
    date: datetime
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total_items: int
    total_pages: int


class PaginatedExpenses(BaseModel):
    data: List[Expense]
    pagination: Pagination
