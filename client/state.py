"""State of the expense list and dashboard views and the transitions that change them."""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Optional, Union


@dataclass(frozen=True)
class Filters:
    start_date: Optional[str] = None  # YYYY-MM-DD
    end_date: Optional[str] = None


@dataclass(frozen=True)
class Sort:
    sort_by: Literal["date", "amount"] = "date"
    order: Literal["asc", "desc"] = "desc"


@dataclass(frozen=True)
class ListState:
    data: Optional[Dict[str, Any]] = None  # last {data, pagination} response
    filters: Filters = field(default_factory=Filters)
    sort: Sort = field(default_factory=Sort)
    page: int = 1
    is_loading: bool = False
    error: Optional[Exception] = None

    @property
    def expenses(self) -> List[Dict[str, Any]]:
        return list(self.data["data"]) if self.data else []


# --- Actions ---

@dataclass(frozen=True)
class FetchStarted:
    pass


@dataclass(frozen=True)
class FetchSucceeded:
    data: Dict[str, Any]


@dataclass(frozen=True)
class FetchFailed:
    error: Exception


@dataclass(frozen=True)
class ExpenseRemoved:
    expense_id: str


@dataclass(frozen=True)
class RolledBack:
    snapshot: Optional[Dict[str, Any]]


@dataclass(frozen=True)
class FiltersChanged:
    filters: Filters


@dataclass(frozen=True)
class SortChanged:
    sort: Sort


@dataclass(frozen=True)
class PageChanged:
    page: int


Action = Union[
    FetchStarted, FetchSucceeded, FetchFailed, ExpenseRemoved, RolledBack,
    FiltersChanged, SortChanged, PageChanged,
]


def reduce(state: ListState, action: Action) -> ListState:
    """Returns the state that follows ``action``. ``state`` is never mutated."""
    if isinstance(action, FetchStarted):
        return replace(state, is_loading=True, error=None)
    if isinstance(action, FetchSucceeded):
        return replace(state, data=action.data, is_loading=False)
    if isinstance(action, FetchFailed):
        return replace(state, error=action.error, is_loading=False)
    if isinstance(action, ExpenseRemoved):
        if state.data is None:
            return state
        remaining = [expense for expense in state.data["data"] if expense.get("id") != action.expense_id]
        return replace(state, data={**state.data, "data": remaining})
    if isinstance(action, RolledBack):
        return replace(state, data=action.snapshot)
    # Filter and sort changes always go back to the first page
    if isinstance(action, FiltersChanged):
        return replace(state, filters=action.filters, page=1)
    if isinstance(action, SortChanged):
        return replace(state, sort=action.sort, page=1)
    if isinstance(action, PageChanged):
        return replace(state, page=action.page)
    raise TypeError(f"Unknown action: {action!r}")


@dataclass(frozen=True)
class DashboardState:
    data: Optional[Dict[str, Any]] = None  # last dashboard response
    is_loading: bool = False
    error: Optional[Exception] = None


def reduce_dashboard(state: DashboardState, action: Action) -> DashboardState:
    """Dashboard counterpart of ``reduce``. Only the fetch actions apply."""
    if isinstance(action, FetchStarted):
        return replace(state, is_loading=True, error=None)
    if isinstance(action, FetchSucceeded):
        return replace(state, data=action.data, is_loading=False)
    if isinstance(action, FetchFailed):
        return replace(state, error=action.error, is_loading=False)
    raise TypeError(f"Unknown dashboard action: {action!r}")
