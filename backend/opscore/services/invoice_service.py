# Overview: Service-layer operations for invoices; totals, numbering and transactional creation.

"""
Invoice Builder

WHY: Every billing-capable flow (orders, appointments, reservations,
subscriptions, manual) materializes the same monetary document.

DESIGN PRINCIPLES:
- Header and line items are one unit: built in memory, committed together.
  A failed item write never leaves a dangling draft header behind.
- Stored amounts are integer cents; arithmetic runs on Decimal.
- total_amount = subtotal - discount_amount + tax_amount holds exactly on the
  stored cents (each component is rounded before the total is formed).
- Invoice numbers are human-readable (INV-YYYYMMDD-XXXXX) and unique per store;
  a collision regenerates the number and retries.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import BillingPayment, Invoice, InvoiceLineItem, Store
from opscore.money import rate_to_bps, round_currency, to_cents
from opscore.time_utils import utcnow
from .concurrency import NUMBER_CONFLICT_ERRORS, run_with_retry
from .ledger_service import append_ledger_event
from .line_item_service import (
    POLICY_ALLOW_CREDIT,
    POLICY_REJECT,
    LineItemInput,
    calculate_line_total,
    is_negative_line,
    validate_policy,
)


logger = logging.getLogger(__name__)


class InvoiceError(Exception):
    """Raised for invoice business-rule violations."""
    pass


class InvoiceNotFoundError(InvoiceError):
    pass


class InvoicePersistenceError(InvoiceError):
    """Storage rejected the invoice; nothing was committed."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

PARTY_TYPES = ("customer", "supplier", "staff", "driver")
SOURCE_TYPES = ("order", "appointment", "reservation", "manual", "subscription")

INVOICE_STATUS_DRAFT = "draft"
INVOICE_STATUS_PARTIAL = "partial"
INVOICE_STATUS_PAID = "paid"

INVOICE_STATUSES = (INVOICE_STATUS_DRAFT, INVOICE_STATUS_PARTIAL, INVOICE_STATUS_PAID)

INVOICE_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
INVOICE_NUMBER_SUFFIX_LENGTH = 5


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_due: Decimal
    line_totals: tuple[Decimal, ...]


def generate_invoice_number(now: datetime | None = None) -> str:
    """
    INV-{YYYYMMDD}-{5 uppercase alphanumerics}.

    Sortable by creation date; not collision-proof on its own (the store-level
    unique constraint is).
    """
    now = now or utcnow()
    suffix = "".join(secrets.choice(INVOICE_NUMBER_ALPHABET) for _ in range(INVOICE_NUMBER_SUFFIX_LENGTH))
    return f"INV-{now:%Y%m%d}-{suffix}"


def calculate_invoice_totals(
    items: Iterable[LineItemInput],
    *,
    tax_rate: Decimal | None = None,
    discount_amount: Decimal | None = None,
) -> InvoiceTotals:
    """
    Aggregate line items into invoice totals.

    - subtotal: sum of quantity * unit_price (pre-discount, pre-tax)
    - tax: invoice-level tax_rate applied to (subtotal - discount_amount) when
      tax_rate is non-zero; otherwise (None or 0) the sum of each line's
      discount-adjusted tax
    - total: subtotal - discount_amount + tax
    - amount_due: total floored at zero
    """
    items = list(items)
    discount = round_currency(discount_amount or Decimal("0"))

    raw_subtotal = sum((item.subtotal for item in items), Decimal("0"))
    if tax_rate:
        raw_tax = (raw_subtotal - discount) * (Decimal(tax_rate) / Decimal("100"))
    else:
        raw_tax = sum((item.tax for item in items), Decimal("0"))

    subtotal = round_currency(raw_subtotal)
    tax_amount = round_currency(raw_tax)
    total_amount = subtotal - discount + tax_amount

    return InvoiceTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax_amount,
        total_amount=total_amount,
        amount_due=max(Decimal("0.00"), total_amount),
        line_totals=tuple(calculate_line_total(item) for item in items),
    )


def derive_invoice_status(total_cents: int, paid_cents: int) -> str:
    """
    Invoice status as a pure function of its financial fields.

    - draft: nothing paid yet
    - paid: amount due is zero
    - partial: something paid, something still due
    """
    if paid_cents <= 0:
        return INVOICE_STATUS_DRAFT
    amount_due = max(0, total_cents - paid_cents)
    return INVOICE_STATUS_PAID if amount_due <= 0 else INVOICE_STATUS_PARTIAL


def _check_negative_policy(items: list[LineItemInput], totals: InvoiceTotals, policy: str) -> None:
    if policy == POLICY_ALLOW_CREDIT:
        return
    for index, item in enumerate(items):
        if is_negative_line(item):
            raise InvoiceError(
                f"items[{index}]: discount {item.discount} exceeds line subtotal {round_currency(item.subtotal)}"
            )
    if totals.discount_amount > totals.subtotal:
        raise InvoiceError(
            f"discount_amount {totals.discount_amount} exceeds invoice subtotal {totals.subtotal}"
        )


# =============================================================================
# INVOICE CREATION
# =============================================================================

def create_invoice(
    *,
    store_id: int,
    party_type: str,
    items: list,
    source_type: str = "manual",
    party_id: str | None = None,
    source_id: str | None = None,
    tax_rate: Decimal | None = None,
    discount_amount: Decimal | None = None,
    due_date: date | None = None,
    notes: str | None = None,
    negative_line_policy: str | None = None,
) -> Invoice:
    """
    Build and persist an invoice with its line items as one transaction.

    Args:
        store_id: Owning store
        party_type: customer, supplier, staff, driver
        items: LineItemInput objects or dicts accepted by LineItemInput.from_dict
        source_type: order, appointment, reservation, manual, subscription
        party_id / source_id: Optional external references
        tax_rate: Invoice-level tax percentage; None or 0 means per-line rates
        discount_amount: Invoice-level discount
        due_date / notes: Optional metadata
        negative_line_policy: "reject" or "allow_credit"; defaults to app config

    Returns:
        The committed Invoice (status draft, amount_paid 0)

    Raises:
        InvoiceError: Invalid input or rejected by the negative line policy
        InvoicePersistenceError: Storage failure (nothing committed)
    """
    if party_type not in PARTY_TYPES:
        raise InvoiceError(f"Invalid party_type: {party_type}. Must be one of {list(PARTY_TYPES)}")
    if source_type not in SOURCE_TYPES:
        raise InvoiceError(f"Invalid source_type: {source_type}. Must be one of {list(SOURCE_TYPES)}")
    if not items:
        raise InvoiceError("At least one line item required")

    lines = [
        item if isinstance(item, LineItemInput) else LineItemInput.from_dict(item, index=index)
        for index, item in enumerate(items)
    ]

    if tax_rate is not None and not (Decimal("0") <= Decimal(tax_rate) <= Decimal("100")):
        raise InvoiceError("tax_rate must be between 0 and 100")
    if discount_amount is not None and discount_amount < 0:
        raise InvoiceError("discount_amount must be >= 0")

    policy = validate_policy(
        negative_line_policy or current_app.config.get("NEGATIVE_LINE_POLICY", POLICY_REJECT)
    )

    totals = calculate_invoice_totals(lines, tax_rate=tax_rate, discount_amount=discount_amount)
    _check_negative_policy(lines, totals, policy)

    if db.session.get(Store, store_id) is None:
        raise InvoiceError(f"Store {store_id} not found")

    def _op() -> Invoice:
        invoice = Invoice(
            store_id=store_id,
            invoice_number=generate_invoice_number(),
            party_type=party_type,
            party_id=party_id,
            source_type=source_type,
            source_id=source_id,
            subtotal_cents=to_cents(totals.subtotal),
            tax_amount_cents=to_cents(totals.tax_amount),
            discount_amount_cents=to_cents(totals.discount_amount),
            total_amount_cents=to_cents(totals.total_amount),
            amount_paid_cents=0,
            amount_due_cents=to_cents(totals.amount_due),
            tax_rate_bps=rate_to_bps(tax_rate) if tax_rate else None,
            status=INVOICE_STATUS_DRAFT,
            due_date=due_date,
            notes=notes,
        )
        for index, (line, line_total) in enumerate(zip(lines, totals.line_totals)):
            invoice.items.append(
                InvoiceLineItem(
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount=line.discount,
                    tax_rate_bps=rate_to_bps(line.tax_rate),
                    line_total_cents=to_cents(line_total),
                    item_type=line.item_type,
                    item_id=line.item_id,
                    sort_order=index,
                )
            )

        db.session.add(invoice)
        db.session.flush()  # header and items in one flush; assigns ids

        append_ledger_event(
            store_id=store_id,
            event_type="invoice.created",
            event_category="invoice",
            entity_type="invoice",
            entity_id=invoice.id,
            note=invoice.invoice_number,
            payload=f"total_cents={invoice.total_amount_cents},items={len(lines)}",
        )

        db.session.commit()
        return invoice

    attempts = current_app.config.get("DOCUMENT_NUMBER_ATTEMPTS", 5)
    try:
        invoice = run_with_retry(_op, attempts=attempts, backoff_base=0.01, retry_on=NUMBER_CONFLICT_ERRORS)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Invoice creation failed for store %s: %s", store_id, exc)
        raise InvoicePersistenceError(f"Failed to create invoice: {exc}") from exc

    logger.info(
        "Created invoice %s (store=%s, total=%s, items=%d)",
        invoice.invoice_number, store_id, invoice.total_amount, len(lines),
    )
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int, *, store_id: int | None = None) -> Invoice:
    """
    Fetch an invoice, optionally scoped to a store.

    Raises:
        InvoiceNotFoundError: If missing or owned by another store
    """
    query = db.session.query(Invoice).filter_by(id=invoice_id)
    if store_id is not None:
        query = query.filter_by(store_id=store_id)
    invoice = query.first()
    if invoice is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    store_id: int,
    *,
    status: str | None = None,
    party_type: str | None = None,
    party_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Invoice], int]:
    """
    Store invoices, newest first.

    Returns:
        (page of invoices, total matching count)
    """
    query = db.session.query(Invoice).filter_by(store_id=store_id)
    if status is not None:
        query = query.filter_by(status=status)
    if party_type is not None:
        query = query.filter_by(party_type=party_type)
    if party_id is not None:
        query = query.filter_by(party_id=party_id)

    total = query.count()
    rows = (
        query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def get_invoice_detail(invoice_id: int, *, store_id: int) -> dict:
    """Invoice with items (by sort_order) and payments (newest first)."""
    invoice = get_invoice(invoice_id, store_id=store_id)
    payments = (
        db.session.query(BillingPayment)
        .filter_by(invoice_id=invoice.id)
        .order_by(BillingPayment.paid_at.desc(), BillingPayment.id.desc())
        .all()
    )
    data = invoice.to_dict(include_items=True)
    data["payments"] = [p.to_dict() for p in payments]
    return data
