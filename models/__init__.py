"""Pydantic models for expenses and dashboard data."""
