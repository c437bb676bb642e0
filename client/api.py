"""HTTP client for the expense tracker API."""
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class ApiError(Exception):
    """A non-2xx response from the API, or a failure to reach it."""

    def __init__(self, status_code: Optional[int], message: str, details: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details or []


def _error_from_response(response, fallback: str) -> ApiError:
    message = fallback
    details = None
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("error") or fallback
        details = detail.get("details")
    elif isinstance(detail, str):
        message = detail
    return ApiError(response.status_code, message, details)


class ExpensesApi:
    """
    Thin wrapper over the REST endpoints. ``session`` can be any object with
    the requests.Session call interface; by default a new Session is used.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, session=None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.headers = {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, path: str, fallback: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = getattr(self.session, method)(url, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Could not reach {url}: {e}")
            raise ApiError(None, f"{fallback}: {e}") from e
        if response.status_code >= 400:
            raise _error_from_response(response, fallback)
        return response

    def list_expenses(self, **params) -> Dict[str, Any]:
        params = {key: value for key, value in params.items() if value is not None}
        return self._request("get", "/expenses", "Failed to fetch expenses", params=params).json()

    def get_expense(self, expense_id: str) -> Dict[str, Any]:
        return self._request("get", f"/expenses/{expense_id}", "Failed to fetch expense").json()

    def create_expense(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("post", "/expenses", "Failed to create expense", json=payload).json()

    def update_expense(self, expense_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("patch", f"/expenses/{expense_id}", "Failed to update expense", json=payload).json()

    def delete_expense(self, expense_id: str) -> None:
        self._request("delete", f"/expenses/{expense_id}", "Failed to delete expense")

    def get_dashboard(self) -> Dict[str, Any]:
        return self._request("get", "/dashboard", "Failed to fetch dashboard data").json()
