"""Property ledger: merges payments and expenses into a running-balance statement.

Ledger formula: Balance = sum(Income) - sum(Expenses)
- Income entries come from payments (fixed "Payment received" description)
- Expense entries come from expenses (category and description passed through)
- Entries are ordered by date; equal dates keep arrival order (payments first)

build_statement() is pure and safe to call from concurrent report requests.
LedgerService wraps it with repository access for a property and date window.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional

from babel.dates import format_date
from babel.numbers import format_currency

from estatebill.errors import LedgerError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_DESCRIPTION = "Payment received"
ZERO = Decimal("0")


class EventType(str, Enum):
    """Direction of a ledger entry."""

    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date range of a statement."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationError(f"Window start {self.start} is after end {self.end}")

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class LedgerEntry:
    """One financial event with the balance after applying it."""

    event_type: EventType
    event_date: date
    amount: Decimal
    description: str
    balance: Decimal
    category: Optional[str] = None
    source_id: Optional[int] = None

    @property
    def signed_amount(self) -> Decimal:
        """Contribution to the balance: +amount for income, -amount for expenses."""
        return self.amount if self.event_type == EventType.INCOME else -self.amount


@dataclass
class LedgerStatement:
    """Chronological entries plus aggregate totals for one property and window."""

    entries: list[LedgerEntry] = field(default_factory=list)
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    property_id: Optional[int] = None
    window: Optional[DateWindow] = None

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def closing_balance(self) -> Decimal:
        """Balance after the last entry (0 for an empty statement)."""
        return self.entries[-1].balance if self.entries else ZERO


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _event_date(record: Any, attr: str, kind: str) -> date:
    value = _field(record, attr)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise LedgerError(f"{kind} {_field(record, 'id')!r} has no valid {attr}: {value!r}")


def _event_amount(record: Any, kind: str) -> Decimal:
    value = _field(record, "amount")
    if value is None or isinstance(value, bool):
        raise LedgerError(f"{kind} {_field(record, 'id')!r} has no amount")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise LedgerError(f"{kind} {_field(record, 'id')!r} has invalid amount {value!r}") from e
    if not amount.is_finite() or amount < 0:
        raise LedgerError(f"{kind} {_field(record, 'id')!r} has invalid amount {value!r}")
    return amount


def build_statement(
    payments: Iterable[Any],
    expenses: Iterable[Any],
    window: Optional[DateWindow] = None,
    property_id: Optional[int] = None,
) -> LedgerStatement:
    """Merge payments and expenses into a running-balance statement.

    Inputs are expected to be scoped to the property and window already;
    no filtering happens here. Records may be ORM rows or dicts exposing
    id, amount and payment_date (payments) or expense_date, category and
    description (expenses).

    Args:
        payments: Payment records, read as income
        expenses: Expense records, read as outflow
        window: Window the records were selected for (carried, not applied)
        property_id: Property the records belong to (carried, not applied)

    Returns:
        LedgerStatement with entries sorted by date and balances filled in

    Raises:
        LedgerError: If a record lacks a date or has a missing/negative amount
    """
    events: list[tuple[EventType, date, Decimal, str, Optional[str], Optional[int]]] = []
    for payment in payments:
        events.append(
            (
                EventType.INCOME,
                _event_date(payment, "payment_date", "Payment"),
                _event_amount(payment, "Payment"),
                PAYMENT_DESCRIPTION,
                None,
                _field(payment, "id"),
            )
        )
    for expense in expenses:
        events.append(
            (
                EventType.EXPENSE,
                _event_date(expense, "expense_date", "Expense"),
                _event_amount(expense, "Expense"),
                _field(expense, "description") or "",
                _field(expense, "category"),
                _field(expense, "id"),
            )
        )

    # sorted() is stable: same-day entries keep arrival order
    events = sorted(events, key=lambda event: event[1])

    statement = LedgerStatement(property_id=property_id, window=window)
    balance = ZERO
    for event_type, event_date, amount, description, category, source_id in events:
        if event_type == EventType.INCOME:
            balance += amount
            statement.total_income += amount
        else:
            balance -= amount
            statement.total_expenses += amount
        statement.entries.append(
            LedgerEntry(
                event_type=event_type,
                event_date=event_date,
                amount=amount,
                description=description,
                balance=balance,
                category=category,
                source_id=source_id,
            )
        )
    return statement


def render_statement_text(
    statement: LedgerStatement,
    currency: str,
    locale: str = "en_US",
    property_name: Optional[str] = None,
) -> str:
    """Render a statement as the plain-text body used for email and export.

    Args:
        statement: Statement to render
        currency: Currency code used only as a display label (no conversion)
        locale: Babel locale for amounts and dates
        property_name: Heading shown above the totals

    Returns:
        Multi-line text with totals and a pipe-separated entry table
    """

    def money(value: Decimal) -> str:
        return format_currency(value, currency, locale=locale)

    lines = []
    title = f"Property Report: {property_name}" if property_name else "Property Report"
    lines.append(title)
    if statement.window:
        lines.append(
            f"Period: {format_date(statement.window.start, 'medium', locale=locale)} - "
            f"{format_date(statement.window.end, 'medium', locale=locale)}"
        )
    lines.append("")
    lines.append(f"Total Income: {money(statement.total_income)}")
    lines.append(f"Total Expenses: {money(statement.total_expenses)}")
    lines.append(f"Net Balance: {money(statement.net_balance)}")
    lines.append("")

    if not statement.entries:
        lines.append("No transactions in this period.")
        return "\n".join(lines)

    lines.append(
        f"{'Date':<10} | {'Type':<8} | {'Description':<30} | {'Category':<18} | "
        f"{'Amount':>14} | {'Balance':>14}"
    )
    lines.append("-" * 108)
    for entry in statement.entries:
        sign = "+" if entry.event_type == EventType.INCOME else "-"
        lines.append(
            f"{entry.event_date.isoformat():<10} | {entry.event_type.value.capitalize():<8} | "
            f"{entry.description[:30]:<30} | {(entry.category or '-')[:18]:<18} | "
            f"{sign + money(entry.amount):>14} | {money(entry.balance):>14}"
        )
    return "\n".join(lines)


class LedgerService:
    """Build property statements from the payment and expense repositories."""

    def __init__(self, payments, expenses):
        """Initialize with repositories.

        Args:
            payments: PaymentRepository implementation
            expenses: ExpenseRepository implementation
        """
        self.payments = payments
        self.expenses = expenses

    def property_statement(self, property_id: int, window: DateWindow) -> LedgerStatement:
        """Statement for one property over an inclusive date window.

        Raises:
            PersistenceError: If either repository fails
            LedgerError: If a fetched record is malformed
        """
        try:
            payments = self.payments.list_by_property_and_range(property_id, window.start, window.end)
            expenses = self.expenses.list_by_property_and_range(property_id, window.start, window.end)
        except PersistenceError:
            logger.error(
                "Failed to load ledger records for property %s, window %s", property_id, window
            )
            raise

        try:
            statement = build_statement(payments, expenses, window=window, property_id=property_id)
        except LedgerError as e:
            logger.error("Malformed ledger input for property %s, window %s: %s", property_id, window, e)
            raise

        logger.info(
            "Built statement for property %s, window %s: %d entries, income=%s, expenses=%s, net=%s",
            property_id,
            window,
            len(statement.entries),
            statement.total_income,
            statement.total_expenses,
            statement.net_balance,
        )
        return statement


__all__ = [
    "DateWindow",
    "EventType",
    "LedgerEntry",
    "LedgerService",
    "LedgerStatement",
    "PAYMENT_DESCRIPTION",
    "build_statement",
    "render_statement_text",
]
