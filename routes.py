"""API Routes for expenses and the dashboard"""
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from motor.motor_asyncio import AsyncIOMotorCollection

from models.dashboard import DashboardData
from models.expense import Expense, PaginatedExpenses
from services import dashboard_service, expenses_service, validation
from services.errors import InvalidInput, StorageError
from utils.auth import get_current_owner

router = APIRouter()
logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "The requested expense does not exist or you do not have permission to access it"


# --- Dependency Function ---
def get_expenses_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB expenses collection from the request state."""
    collection = getattr(request.state, "expenses_collection", None)
    if collection is None:
        logger.error("Expenses collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return collection


# Type hints for the dependencies
OwnerDep = Annotated[str, Depends(get_current_owner)]
ExpensesCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_expenses_collection)]


# --- Helpers ---
def _validation_failed(e: InvalidInput, status_code: int) -> HTTPException:
    logger.info(f"Validation failed: {e}")
    return HTTPException(status_code=status_code, detail={"error": "Validation failed", "details": e.errors})


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "Expense not found", "message": NOT_FOUND_MESSAGE},
    )


def _server_error(action: str) -> HTTPException:
    # Never forward backend error details to the client
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": f"An unexpected server error occurred while {action}."},
    )


async def _read_json_object(request: Request) -> Any:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail={"error": "Invalid JSON in request body"})
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail={"error": "Request body must be a JSON object"})
    return payload


def _parse_expense_id(raw_id: str) -> str:
    try:
        return validation.validate_identifier(raw_id)
    except InvalidInput as e:
        raise _validation_failed(e, status.HTTP_400_BAD_REQUEST)


# --- API Routes ---

@router.post(
    "/expenses",
    response_model=Expense,
    status_code=status.HTTP_201_CREATED,
    summary="Create Expense",
    description="Creates a new expense owned by the authenticated user.",
)
async def create_expense(request: Request, owner_id: OwnerDep, collection: ExpensesCollectionDep) -> Expense:
    logger.info(f"POST /expenses endpoint called by owner {owner_id}.")
    payload = await _read_json_object(request)
    try:
        data = validation.validate_create(payload)
    except InvalidInput as e:
        raise _validation_failed(e, 422)

    try:
        return await expenses_service.create_expense(collection, owner_id, data)
    except StorageError:
        raise _server_error("creating the expense")
    except Exception as e:
        logger.exception(f"Unexpected error creating expense: {e}")
        raise _server_error("creating the expense")


@router.get(
    "/expenses",
    response_model=PaginatedExpenses,
    summary="List Expenses",
    description="Paginated list of the user's expenses, sorted by date descending by default.",
)
async def list_expenses(request: Request, owner_id: OwnerDep, collection: ExpensesCollectionDep) -> PaginatedExpenses:
    """
    Supports ``page``, ``limit``, ``sort_by`` (date|amount), ``order``
    (asc|desc) and inclusive ``start_date``/``end_date`` (YYYY-MM-DD).
    """
    logger.info(f"GET /expenses endpoint called by owner {owner_id} with {dict(request.query_params)}")
    try:
        query = validation.validate_list_query(request.query_params)
    except InvalidInput as e:
        raise _validation_failed(e, status.HTTP_400_BAD_REQUEST)

    try:
        return await expenses_service.list_expenses(collection, owner_id, query)
    except StorageError:
        raise _server_error("fetching expenses")
    except Exception as e:
        logger.exception(f"Unexpected error fetching expenses: {e}")
        raise _server_error("fetching expenses")


@router.get("/expenses/{expense_id}", response_model=Expense, summary="Get Expense")
async def get_expense(expense_id: str, owner_id: OwnerDep, collection: ExpensesCollectionDep) -> Expense:
    logger.info(f"GET /expenses/{expense_id} endpoint called by owner {owner_id}.")
    expense_id = _parse_expense_id(expense_id)
    try:
        expense = await expenses_service.get_expense_by_id(collection, owner_id, expense_id)
    except StorageError:
        raise _server_error("fetching the expense")
    except Exception as e:
        logger.exception(f"Unexpected error fetching expense {expense_id}: {e}")
        raise _server_error("fetching the expense")
    if expense is None:
        raise _not_found()
    return expense


@router.patch("/expenses/{expense_id}", response_model=Expense, summary="Update Expense")
async def update_expense(
    expense_id: str,
    request: Request,
    owner_id: OwnerDep,
    collection: ExpensesCollectionDep,
) -> Expense:
    """Partial update: only the fields present in the body are changed."""
    logger.info(f"PATCH /expenses/{expense_id} endpoint called by owner {owner_id}.")
    expense_id = _parse_expense_id(expense_id)
    payload = await _read_json_object(request)
    try:
        patch = validation.validate_update(payload)
    except InvalidInput as e:
        raise _validation_failed(e, 422)

    try:
        expense = await expenses_service.update_expense(collection, owner_id, expense_id, patch)
    except StorageError:
        raise _server_error("updating the expense")
    except Exception as e:
        logger.exception(f"Unexpected error updating expense {expense_id}: {e}")
        raise _server_error("updating the expense")
    if expense is None:
        raise _not_found()
    return expense


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Expense")
async def delete_expense(expense_id: str, owner_id: OwnerDep, collection: ExpensesCollectionDep) -> Response:
    logger.warning(f"DELETE /expenses/{expense_id} endpoint called by owner {owner_id}.")
    expense_id = _parse_expense_id(expense_id)
    try:
        deleted = await expenses_service.delete_expense(collection, owner_id, expense_id)
    except StorageError:
        raise _server_error("deleting the expense")
    except Exception as e:
        logger.exception(f"Unexpected error deleting expense {expense_id}: {e}")
        raise _server_error("deleting the expense")
    if not deleted:
        raise _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/dashboard",
    response_model=DashboardData,
    summary="Dashboard Summary",
    description="Totals, top five expenses and monthly totals for the last 12 months.",
)
async def get_dashboard(owner_id: OwnerDep, collection: ExpensesCollectionDep) -> DashboardData:
    logger.info(f"GET /dashboard endpoint called by owner {owner_id}.")
    try:
        return await dashboard_service.get_dashboard_data(collection, owner_id)
    except StorageError:
        raise _server_error("building the dashboard")
    except Exception as e:
        logger.exception(f"Unexpected error building dashboard: {e}")
        raise _server_error("building the dashboard")


@router.get("/health", tags=["system"])
async def healthcheck() -> dict:
    return {"status": "ok"}
