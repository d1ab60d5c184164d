"""Billing, ledger and recurrence services."""

from estatebill.services.amount_words import amount_to_words
from estatebill.services.ledger import DateWindow, LedgerStatement, build_statement
from estatebill.services.recurrence import next_occurrence

__all__ = [
    "DateWindow",
    "LedgerStatement",
    "amount_to_words",
    "build_statement",
    "next_occurrence",
]
