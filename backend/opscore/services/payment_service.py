# Overview: Service-layer operations for billing payments; records payments and settles invoices.

"""
Payment Recorder

WHY: Money received must land on the invoice it pays for, exactly once, even
when two cashiers record payments against the same invoice at the same moment.

DESIGN PRINCIPLES:
- Payments are immutable and always "completed" when recorded
- A payment without invoice_id is an unattached credit (valid, no invoice change)
- Payment, allocation, invoice update and ledger events commit together.
  A payment is never visible without its reconciliation.
- The invoice row is locked for the read-compute-write of its financial fields
  and carries a version column; conflicts roll back and retry from fresh state.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import BillingPayment, Invoice, PaymentAllocation, Store
from opscore.money import to_cents
from opscore.time_utils import epoch_millis, utcnow
from opscore.validation import MAX_AMOUNT
from .concurrency import NUMBER_CONFLICT_ERRORS, lock_for_update, run_with_retry
from .invoice_service import derive_invoice_status
from .ledger_service import append_ledger_event


logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


class PaymentNotFoundError(PaymentError):
    pass


class PaymentPersistenceError(PaymentError):
    """Storage rejected the payment; nothing was committed."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_METHODS = ("cash", "bank", "qpay", "card", "online", "credit")

PAYMENT_STATUS_COMPLETED = "completed"

# Recognized by list filters. Only "completed" is ever written here; the others
# belong to gateway flows that settle before a payment reaches this module.
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded", "cancelled")

MIN_PAYMENT_AMOUNT = Decimal("0.01")


def generate_payment_number() -> str:
    """PAY-{epoch milliseconds}. Unique per store through the table constraint."""
    return f"PAY-{epoch_millis()}"


# =============================================================================
# PAYMENT RECORDING
# =============================================================================

def _apply_to_invoice(invoice: Invoice, amount_cents: int) -> None:
    """Add amount to the invoice's paid total and re-derive due/status."""
    invoice.amount_paid_cents = (invoice.amount_paid_cents or 0) + amount_cents
    invoice.amount_due_cents = max(0, invoice.total_amount_cents - invoice.amount_paid_cents)
    invoice.status = derive_invoice_status(invoice.total_amount_cents, invoice.amount_paid_cents)


def record_payment(
    *,
    store_id: int,
    amount: Decimal,
    method: str,
    invoice_id: int | None = None,
    gateway_ref: str | None = None,
    gateway_response: dict | None = None,
    notes: str | None = None,
) -> BillingPayment:
    """
    Record a payment and, when invoice_id is given, settle it against that invoice.

    Args:
        store_id: Store receiving the money
        amount: Payment amount (>= 0.01)
        method: cash, bank, qpay, card, online, credit
        invoice_id: Invoice to allocate the full amount to (optional)
        gateway_ref / gateway_response: External processor reference and payload
        notes: Free text

    Returns:
        The committed BillingPayment

    Raises:
        PaymentError: Invalid input, or invoice not found in this store
        PaymentPersistenceError: Storage failure after retries (nothing committed)
    """
    if method not in PAYMENT_METHODS:
        raise PaymentError(f"Invalid payment method: {method}. Must be one of {list(PAYMENT_METHODS)}")

    amount = Decimal(amount)
    if amount < MIN_PAYMENT_AMOUNT:
        raise PaymentError(f"Payment amount must be at least {MIN_PAYMENT_AMOUNT}")
    if amount > MAX_AMOUNT:
        raise PaymentError(f"Payment amount must be at most {MAX_AMOUNT}")
    amount_cents = to_cents(amount)

    if gateway_response is not None and not isinstance(gateway_response, dict):
        raise PaymentError("gateway_response must be an object")

    if db.session.get(Store, store_id) is None:
        raise PaymentError(f"Store {store_id} not found")

    def _op() -> BillingPayment:
        invoice = None
        if invoice_id is not None:
            # Lock the invoice for the read-compute-write below
            invoice = lock_for_update(
                db.session.query(Invoice).filter_by(id=invoice_id, store_id=store_id)
            ).first()
            if invoice is None:
                raise PaymentError(f"Invoice {invoice_id} not found")

        payment = BillingPayment(
            store_id=store_id,
            invoice_id=invoice_id,
            payment_number=generate_payment_number(),
            amount_cents=amount_cents,
            method=method,
            status=PAYMENT_STATUS_COMPLETED,
            gateway_ref=gateway_ref,
            gateway_response=gateway_response,
            notes=notes,
            paid_at=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()  # Get payment ID

        append_ledger_event(
            store_id=store_id,
            event_type="payment.recorded",
            event_category="payment",
            entity_type="billing_payment",
            entity_id=payment.id,
            note=payment.payment_number,
            payload=f"amount_cents={amount_cents},method={method}",
        )

        if invoice is not None:
            db.session.add(
                PaymentAllocation(
                    payment_id=payment.id,
                    invoice_id=invoice.id,
                    amount_cents=amount_cents,
                )
            )
            _apply_to_invoice(invoice, amount_cents)
            db.session.flush()  # version_id check happens here

            append_ledger_event(
                store_id=store_id,
                event_type="payment.allocated",
                event_category="payment",
                entity_type="invoice",
                entity_id=invoice.id,
                note=payment.payment_number,
                payload=(
                    f"amount_cents={amount_cents},amount_paid_cents={invoice.amount_paid_cents},"
                    f"amount_due_cents={invoice.amount_due_cents},status={invoice.status}"
                ),
            )

        db.session.commit()
        return payment

    attempts = current_app.config.get("DOCUMENT_NUMBER_ATTEMPTS", 5)
    try:
        payment = run_with_retry(_op, attempts=attempts, backoff_base=0.01, retry_on=NUMBER_CONFLICT_ERRORS)
    except PaymentError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Payment recording failed for store %s: %s", store_id, exc)
        raise PaymentPersistenceError(f"Failed to record payment: {exc}") from exc

    logger.info(
        "Recorded payment %s (store=%s, amount=%s, method=%s, invoice=%s)",
        payment.payment_number, store_id, payment.amount, method, invoice_id,
    )
    return payment


# =============================================================================
# RECONCILIATION
# =============================================================================

def reconcile_invoice(invoice_id: int) -> Invoice:
    """
    Recompute an invoice's paid/due/status from its allocations.

    WHY: Allocations are the source of truth for what was applied. This repairs
    invoices whose cached totals drifted (imports, manual DB edits).

    Returns:
        The reconciled Invoice

    Raises:
        PaymentError: If invoice not found
    """
    def _op() -> tuple[Invoice, int]:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise PaymentError(f"Invoice {invoice_id} not found")

        allocated = (
            db.session.query(func.coalesce(func.sum(PaymentAllocation.amount_cents), 0))
            .filter(PaymentAllocation.invoice_id == invoice.id)
            .scalar()
        )
        previous_paid = invoice.amount_paid_cents or 0

        invoice.amount_paid_cents = 0
        _apply_to_invoice(invoice, int(allocated))

        if invoice.amount_paid_cents != previous_paid:
            append_ledger_event(
                store_id=invoice.store_id,
                event_type="invoice.reconciled",
                event_category="invoice",
                entity_type="invoice",
                entity_id=invoice.id,
                payload=f"amount_paid_cents={previous_paid}->{invoice.amount_paid_cents}",
            )

        db.session.commit()
        return invoice, previous_paid

    try:
        invoice, previous_paid = run_with_retry(_op)
    except PaymentError:
        db.session.rollback()
        raise

    if invoice.amount_paid_cents != previous_paid:
        logger.warning(
            "Reconciled invoice %s: amount_paid_cents %s -> %s",
            invoice.id, previous_paid, invoice.amount_paid_cents,
        )
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int, *, store_id: int | None = None) -> BillingPayment:
    query = db.session.query(BillingPayment).filter_by(id=payment_id)
    if store_id is not None:
        query = query.filter_by(store_id=store_id)
    payment = query.first()
    if payment is None:
        raise PaymentNotFoundError(f"Payment {payment_id} not found")
    return payment


def get_payment_detail(payment_id: int, *, store_id: int) -> dict:
    """Payment with its allocations."""
    payment = get_payment(payment_id, store_id=store_id)
    allocations = (
        db.session.query(PaymentAllocation)
        .filter_by(payment_id=payment.id)
        .order_by(PaymentAllocation.id)
        .all()
    )
    data = payment.to_dict()
    data["allocations"] = [a.to_dict() for a in allocations]
    return data


def list_payments(
    store_id: int,
    *,
    invoice_id: int | None = None,
    status: str | None = None,
    method: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[BillingPayment], int]:
    """
    Store payments, newest first.

    Returns:
        (page of payments, total matching count)
    """
    query = db.session.query(BillingPayment).filter_by(store_id=store_id)
    if invoice_id is not None:
        query = query.filter_by(invoice_id=invoice_id)
    if status is not None:
        query = query.filter_by(status=status)
    if method is not None:
        query = query.filter_by(method=method)

    total = query.count()
    rows = (
        query.order_by(BillingPayment.created_at.desc(), BillingPayment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total
