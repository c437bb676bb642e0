"""Pydantic models for the dashboard summary"""
from datetime import datetime
from typing import List

from pydantic import BaseModel


class TopExpense(BaseModel):
    id: str
    name: str
    amount: float
    date: datetime


class MonthlySummary(BaseModel):
    month: str  # YYYY-MM
    total: float


class DashboardData(BaseModel):
    """
    Aggregates computed on demand for one owner. Nothing here is stored.
    """
    total_expenses: float
    current_month_expenses: float
    top_5_expenses: List[TopExpense]
    monthly_summary: List[MonthlySummary]
