"""Input validation for the expense API. Pure functions, no I/O."""
import uuid
from typing import Any, Mapping

from pydantic import ValidationError

from models.expense import ExpenseCreate, ExpenseListQuery, ExpenseUpdate
from services.errors import InvalidInput


LIST_QUERY_PARAMS = ("page", "limit", "sort_by", "order", "start_date", "end_date")
# Largest skip a BSON int64 can carry
MAX_SKIP = 2**63 - 1


def _require_object(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise InvalidInput([{"field": "body", "message": "Request body must be a JSON object"}])


def validate_create(payload: Any) -> ExpenseCreate:
    """Validates a create body and returns the normalized values."""
    _require_object(payload)
    try:
        return ExpenseCreate.model_validate(payload)
    except ValidationError as e:
        raise InvalidInput.from_pydantic(e) from e


def validate_update(payload: Any) -> ExpenseUpdate:
    """Validates a partial update body. An update with no fields is rejected."""
    _require_object(payload)
    try:
        return ExpenseUpdate.model_validate(payload)
    except ValidationError as e:
        raise InvalidInput.from_pydantic(e) from e


def validate_list_query(params: Mapping[str, Any]) -> ExpenseListQuery:
    """
    Parses raw query string values into an ExpenseListQuery.

    Unknown parameters are ignored. Both date bounds are inclusive and
    ``start_date`` may not come after ``end_date``.
    """
    raw = {key: params[key] for key in LIST_QUERY_PARAMS if key in params}
    try:
        query = ExpenseListQuery.model_validate(raw)
    except ValidationError as e:
        raise InvalidInput.from_pydantic(e) from e

    if query.start_date and query.end_date and query.start_date > query.end_date:
        raise InvalidInput([{
            "field": "start_date",
            "message": "Start date must be before or equal to end date",
        }])
    if (query.page - 1) * query.limit > MAX_SKIP:
        raise InvalidInput([{"field": "page", "message": "Page is too large"}])
    return query


def validate_identifier(raw: Any) -> str:
    """Accepts only a canonical UUID string and returns it lower-cased."""
    message = "Invalid expense ID format. Must be a valid UUID."
    if not isinstance(raw, str):
        raise InvalidInput([{"field": "id", "message": message}])
    try:
        parsed = uuid.UUID(raw)
    except ValueError:
        raise InvalidInput([{"field": "id", "message": message}])
    if str(parsed) != raw.lower():
        # uuid.UUID also accepts braces, urn: prefixes and hex without dashes
        raise InvalidInput([{"field": "id", "message": message}])
    return str(parsed)
