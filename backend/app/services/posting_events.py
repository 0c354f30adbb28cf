# Overview: Typed business-event records consumed by the auto-posting adapter.

"""
Business event records.

Producers (expenses, purchase invoices, payroll/reimbursements, daily
revenue) hand over their persisted record; the adapter only needs the
fields below. All amounts are in cents.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date

from app.time_utils import parse_iso_date


PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_BANK = "bank"
PAYMENT_METHOD_CHECK = "check"
PAYMENT_METHOD_CARD = "card"


class _Record:
    """from_dict for producer payloads: unknown keys ignored, dates parsed."""

    _date_fields: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict):
        names = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in names}
        for key in cls._date_fields:
            if key in values:
                values[key] = parse_iso_date(values[key])
        return cls(**values)


@dataclass(frozen=True)
class ExpenseRecord(_Record):
    id: int
    store_id: int
    entry_date: date
    amount_cents: int
    payment_method: str
    expense_type_name: str = "Operating"
    bank_name: str | None = None
    entered_by: int | None = None

    _date_fields = ("entry_date",)


@dataclass(frozen=True)
class PurchaseInvoiceRecord(_Record):
    id: int
    store_id: int
    purchase_date: date
    amount_cents: int
    invoice_number: str | None = None
    # Expense category / department account to charge; falls back to "Purchases"
    expense_account_name: str | None = None
    paid_on_purchase: bool = False
    payment_method_on_purchase: str | None = None
    bank_name_on_purchase: str | None = None
    is_reimbursable: bool = False
    reimbursement_to: str | None = None
    entered_by: int | None = None

    _date_fields = ("purchase_date",)


@dataclass(frozen=True)
class InvoicePaymentRecord(_Record):
    invoice_id: int
    store_id: int
    payment_date: date
    amount_cents: int
    payment_method: str
    payment_id: int | None = None
    invoice_number: str | None = None
    check_number: str | None = None
    bank_name: str | None = None
    entered_by: int | None = None

    _date_fields = ("payment_date",)

    @property
    def reference_id(self) -> str:
        if self.payment_id is not None:
            return str(self.payment_id)
        return f"{self.invoice_id}:{self.payment_date.isoformat()}"


@dataclass(frozen=True)
class ReimbursementRecord(_Record):
    invoice_id: int
    store_id: int
    reimbursement_date: date
    amount_cents: int
    payment_method: str
    reimbursement_to: str | None = None
    check_number: str | None = None
    bank_name: str | None = None
    entered_by: int | None = None

    _date_fields = ("reimbursement_date",)


@dataclass(frozen=True)
class DailyRevenueRecord(_Record):
    id: int
    store_id: int
    entry_date: date
    # Calculated business cash when available, else the day's total cash
    business_cash_cents: int = 0
    business_credit_card_cents: int = 0
    online_net_cents: int = 0
    customer_tab_cents: int = 0
    credit_card_fees_cents: int = 0
    other_cash_expense_cents: int = 0
    # Signed: > 0 the store owes the lottery, < 0 the lottery paid the store
    lottery_owed_cents: int = 0
    entered_by: int | None = None

    _date_fields = ("entry_date",)
