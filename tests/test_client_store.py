from __future__ import annotations

import pytest
from conftest import make_token

from client.api import ApiError, ExpensesApi
from client.dashboard_store import DashboardStore
from client.expenses_store import ExpensesStore
from client.state import (
    DashboardState,
    ExpenseRemoved,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    Filters,
    ListState,
    RolledBack,
    Sort,
    reduce,
    reduce_dashboard,
)


def _page(*ids, total=None):
    return {
        "data": [{"id": expense_id, "name": f"Expense {expense_id}", "amount": 1.0} for expense_id in ids],
        "pagination": {"page": 1, "limit": 10, "total_items": total or len(ids), "total_pages": 1},
    }


class FakeApi:
    """Records calls and serves canned list pages."""

    def __init__(self, pages=None):
        self.pages = list(pages or [])
        self.list_calls = []
        self.deleted = []
        self.fail_delete = False
        self.fail_list = False
        self.fail_dashboard = False
        self.dashboards = []
        self.store = None
        self.rows_seen_during_delete = None

    def list_expenses(self, **params):
        self.list_calls.append(params)
        if self.fail_list:
            raise ApiError(500, "Failed to fetch expenses")
        return self.pages.pop(0) if self.pages else _page()

    def create_expense(self, payload):
        return {"id": "new", **payload}

    def update_expense(self, expense_id, payload):
        return {"id": expense_id, **payload}

    def delete_expense(self, expense_id):
        self.rows_seen_during_delete = [expense["id"] for expense in self.store.state.expenses]
        if self.fail_delete:
            raise ApiError(500, "Failed to delete expense")
        self.deleted.append(expense_id)

    def get_dashboard(self):
        if self.fail_dashboard:
            raise ApiError(500, "Failed to fetch dashboard data")
        return self.dashboards.pop(0)


@pytest.fixture()
def api():
    return FakeApi()


@pytest.fixture()
def store(api):
    store = ExpensesStore(api)
    api.store = store
    return store


def test_fetch_uses_current_state(store, api):
    api.pages = [_page("a", "b")]

    state = store.fetch()

    assert [expense["id"] for expense in state.expenses] == ["a", "b"]
    assert state.is_loading is False
    assert api.list_calls == [{
        "page": 1, "limit": 10, "sort_by": "date", "order": "desc", "start_date": None, "end_date": None,
    }]


def test_filter_and_sort_changes_reset_page(store, api):
    store.set_page(3)
    assert store.state.page == 3

    store.set_filters(Filters(start_date="2024-01-01", end_date="2024-01-31"))
    assert store.state.page == 1
    assert api.list_calls[-1]["start_date"] == "2024-01-01"

    store.set_page(2)
    store.set_sort(Sort(sort_by="amount", order="asc"))
    assert store.state.page == 1
    assert api.list_calls[-1]["sort_by"] == "amount"
    assert len(api.list_calls) == 4


def test_page_change_keeps_filters(store, api):
    store.set_filters(Filters(start_date="2024-01-01"))
    store.set_page(2)

    assert api.list_calls[-1]["page"] == 2
    assert api.list_calls[-1]["start_date"] == "2024-01-01"


def test_mutations_refetch_current_page(store, api):
    store.add_expense({"name": "Coffee"})
    store.update_expense("a", {"amount": 2})

    assert len(api.list_calls) == 2


def test_fetch_errors_are_kept_in_state(store, api):
    api.fail_list = True

    state = store.fetch()

    assert isinstance(state.error, ApiError)
    assert state.is_loading is False


def test_optimistic_delete_rolls_back_on_failure(store, api):
    api.pages = [_page("1", "2", "3")]
    store.fetch()
    api.fail_delete = True

    with pytest.raises(ApiError):
        store.delete_expense("2")

    assert api.rows_seen_during_delete == ["1", "3"]
    assert [expense["id"] for expense in store.state.expenses] == ["1", "2", "3"]
    assert len(api.list_calls) == 1


def test_successful_delete_refetches(store, api):
    api.pages = [_page("1", "2", "3"), _page("1", "3")]
    store.fetch()

    store.delete_expense("2")

    assert api.deleted == ["2"]
    assert api.rows_seen_during_delete == ["1", "3"]
    assert len(api.list_calls) == 2
    assert store.state.data["pagination"]["total_items"] == 2


def test_reduce_transitions():
    state = reduce(ListState(), FetchFailed(RuntimeError("boom")))
    assert state.error is not None

    state = reduce(state, FetchStarted())
    assert state.is_loading is True
    assert state.error is None

    loaded = ListState(data=_page("1", "2"))
    removed = reduce(loaded, ExpenseRemoved("1"))
    assert [expense["id"] for expense in removed.expenses] == ["2"]
    assert [expense["id"] for expense in loaded.expenses] == ["1", "2"]
    assert reduce(removed, RolledBack(loaded.data)).data == loaded.data

    with pytest.raises(TypeError):
        reduce(ListState(), object())


DASHBOARD = {
    "total_expenses": 12.5,
    "current_month_expenses": 0,
    "top_5_expenses": [],
    "monthly_summary": [],
}


def test_dashboard_fetch_stores_the_summary(api):
    api.dashboards = [DASHBOARD]
    store = DashboardStore(api)

    state = store.fetch()

    assert state.data == DASHBOARD
    assert state.is_loading is False
    assert state.error is None


def test_dashboard_fetch_errors_keep_previous_data(api):
    api.dashboards = [DASHBOARD]
    store = DashboardStore(api)
    store.fetch()
    api.fail_dashboard = True

    state = store.refetch()

    assert isinstance(state.error, ApiError)
    assert state.data == DASHBOARD
    assert state.is_loading is False


def test_reduce_dashboard_transitions():
    state = reduce_dashboard(DashboardState(), FetchStarted())
    assert state.is_loading is True

    state = reduce_dashboard(state, FetchSucceeded(DASHBOARD))
    assert (state.data, state.is_loading) == (DASHBOARD, False)

    with pytest.raises(TypeError):
        reduce_dashboard(state, ExpenseRemoved("1"))


def test_store_against_running_api(client):
    api = ExpensesApi("http://testserver/api", token=make_token(), session=client)
    store = ExpensesStore(api, page_size=2)

    for amount in (5, 15, 25):
        store.add_expense({"name": f"Item {amount}", "amount": amount, "date": "2024-03-01T12:00:00Z"})

    assert store.state.data["pagination"]["total_items"] == 3
    assert store.state.data["pagination"]["total_pages"] == 2

    store.set_sort(Sort(sort_by="amount", order="asc"))
    assert [expense["amount"] for expense in store.state.expenses] == [5, 15]

    store.delete_expense(store.state.expenses[0]["id"])
    assert store.state.data["pagination"]["total_items"] == 2
    assert [expense["amount"] for expense in store.state.expenses] == [15, 25]

    first = store.state.expenses[0]
    assert api.get_expense(first["id"]) == first
    with pytest.raises(ApiError) as exc_info:
        api.get_expense("not-a-uuid")
    assert exc_info.value.status_code == 400

    dashboard = DashboardStore(api).fetch()
    assert dashboard.error is None
    assert dashboard.data["total_expenses"] == 40
    assert [expense["amount"] for expense in dashboard.data["top_5_expenses"]] == [25, 15]

    with pytest.raises(ApiError) as exc_info:
        store.add_expense({"name": "", "amount": 0, "date": "bad"})
    assert exc_info.value.status_code == 422
    assert {detail["field"] for detail in exc_info.value.details} == {"name", "amount", "date"}
