"""Recurring billing, property ledgers and invoice helpers for property management."""

__version__ = "0.1.0"
