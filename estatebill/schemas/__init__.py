"""Pydantic schemas for validating input at save time."""
