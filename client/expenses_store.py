"""Client-side cache of one page of expenses plus the mutations on it."""
import logging
from typing import Any, Dict, Optional

from client.api import ApiError, ExpensesApi
from client.state import (
    ExpenseRemoved,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    Filters,
    FiltersChanged,
    ListState,
    PageChanged,
    RolledBack,
    Sort,
    SortChanged,
    reduce,
)

logger = logging.getLogger(__name__)


class ExpensesStore:
    """
    Holds the list state for an expenses view.

    Any change of filters, sort or page triggers a refetch. Creating and
    updating refetch the current page afterwards; deleting is optimistic and
    restores the previous page if the request fails.
    """

    def __init__(self, api: ExpensesApi, page_size: int = 10):
        self.api = api
        self.page_size = page_size
        self.state = ListState()

    def dispatch(self, action) -> ListState:
        self.state = reduce(self.state, action)
        return self.state

    # --- Reads ---

    def fetch(self) -> ListState:
        """Loads the current page. Errors are kept in ``state.error``, not raised."""
        self.dispatch(FetchStarted())
        state = self.state
        try:
            result = self.api.list_expenses(
                page=state.page,
                limit=self.page_size,
                sort_by=state.sort.sort_by,
                order=state.sort.order,
                start_date=state.filters.start_date,
                end_date=state.filters.end_date,
            )
        except ApiError as e:
            logger.error(f"Failed to fetch expenses: {e}")
            return self.dispatch(FetchFailed(e))
        return self.dispatch(FetchSucceeded(result))

    refetch = fetch

    def set_filters(self, filters: Filters) -> ListState:
        self.dispatch(FiltersChanged(filters))
        return self.fetch()

    def set_sort(self, sort: Sort) -> ListState:
        self.dispatch(SortChanged(sort))
        return self.fetch()

    def set_page(self, page: int) -> ListState:
        self.dispatch(PageChanged(page))
        return self.fetch()

    # --- Mutations ---

    def add_expense(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        expense = self.api.create_expense(payload)
        self.fetch()
        return expense

    def update_expense(self, expense_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        expense = self.api.update_expense(expense_id, payload)
        self.fetch()
        return expense

    def delete_expense(self, expense_id: str) -> None:
        snapshot: Optional[Dict[str, Any]] = self.state.data
        self.dispatch(ExpenseRemoved(expense_id))
        try:
            self.api.delete_expense(expense_id)
        except Exception:
            self.dispatch(RolledBack(snapshot))
            raise
        # Removing a row can shift page boundaries, so reload the counts
        self.fetch()
