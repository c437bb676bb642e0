"""Client-side cache of the dashboard summary."""
import logging

from client.api import ApiError, ExpensesApi
from client.state import DashboardState, FetchFailed, FetchStarted, FetchSucceeded, reduce_dashboard

logger = logging.getLogger(__name__)


class DashboardStore:
    """Loads the dashboard on demand. A failed load keeps the last good data."""

    def __init__(self, api: ExpensesApi):
        self.api = api
        self.state = DashboardState()

    def dispatch(self, action) -> DashboardState:
        self.state = reduce_dashboard(self.state, action)
        return self.state

    def fetch(self) -> DashboardState:
        """Errors are kept in ``state.error``, not raised."""
        self.dispatch(FetchStarted())
        try:
            result = self.api.get_dashboard()
        except ApiError as e:
            logger.error(f"Failed to fetch dashboard: {e}")
            return self.dispatch(FetchFailed(e))
        return self.dispatch(FetchSucceeded(result))

    refetch = fetch
