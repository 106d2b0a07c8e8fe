"""Pydantic schemas for API boundaries and service return values."""
