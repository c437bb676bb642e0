"""Validation, storage and aggregation services."""
