from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from opscore.money import bps_to_rate, format_amount, format_price, from_cents, plain_decimal
from opscore.time_utils import to_iso_date, to_utc_z


class Invoice(db.Model):
    """
    Invoice header (universal billing).

    WHY: One monetary document shape for every vertical (orders, appointments,
    reservations, subscriptions, manual). Created once as draft by the invoice
    builder; afterwards only the payment recorder mutates the financial fields.

    INVARIANTS (all amounts in cents):
    - total_amount = subtotal - discount_amount + tax_amount
    - amount_due = max(0, total_amount - amount_paid)
    - status is derived: draft before any payment, paid when amount_due <= 0,
      partial otherwise
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("store_id", "invoice_number", name="uq_invoices_store_number"),
        db.Index("ix_invoices_store_status_created", "store_id", "status", "created_at"),
        db.Index("ix_invoices_store_party", "store_id", "party_type", "party_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Human-readable number, e.g. "INV-20261016-7QX2M"
    invoice_number = db.Column(db.String(32), nullable=False)

    # Who owes / is owed
    party_type = db.Column(db.String(16), nullable=False)  # customer, supplier, staff, driver
    party_id = db.Column(db.String(64), nullable=True)

    # What produced the invoice
    source_type = db.Column(db.String(16), nullable=False, default="manual")  # order, appointment, reservation, manual, subscription
    source_id = db.Column(db.String(64), nullable=True)

    subtotal_cents = db.Column(db.BigInteger, nullable=False, default=0)
    tax_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    discount_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    amount_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    amount_due_cents = db.Column(db.BigInteger, nullable=False, default=0)

    # Invoice-level tax rate when one was given (basis points); NULL means per-line rates
    tax_rate_bps = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)  # draft, partial, paid

    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Optimistic lock: concurrent payment reconciliation on the same invoice
    # raises StaleDataError instead of silently losing an update.
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    items = db.relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        order_by="InvoiceLineItem.sort_order",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def subtotal(self) -> Decimal:
        return from_cents(self.subtotal_cents)

    @property
    def tax_amount(self) -> Decimal:
        return from_cents(self.tax_amount_cents)

    @property
    def discount_amount(self) -> Decimal:
        return from_cents(self.discount_amount_cents)

    @property
    def total_amount(self) -> Decimal:
        return from_cents(self.total_amount_cents)

    @property
    def amount_paid(self) -> Decimal:
        return from_cents(self.amount_paid_cents)

    @property
    def amount_due(self) -> Decimal:
        return from_cents(self.amount_due_cents)

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status!r}>"

    def to_dict(self, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "invoice_number": self.invoice_number,
            "party_type": self.party_type,
            "party_id": self.party_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "subtotal": format_amount(self.subtotal_cents),
            "tax_amount": format_amount(self.tax_amount_cents),
            "discount_amount": format_amount(self.discount_amount_cents),
            "total_amount": format_amount(self.total_amount_cents),
            "amount_paid": format_amount(self.amount_paid_cents),
            "amount_due": format_amount(self.amount_due_cents),
            "tax_rate": str(bps_to_rate(self.tax_rate_bps)) if self.tax_rate_bps is not None else None,
            "status": self.status,
            "due_date": to_iso_date(self.due_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceLineItem(db.Model):
    """
    One priced component of an invoice.

    Owned exclusively by its invoice; written together with the header and
    never modified afterwards.
    """
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.Index("ix_invoice_items_invoice_sort", "invoice_id", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 3), nullable=False, default=1)
    # Stored at input precision; only line_total is rounded to cents
    unit_price = db.Column(db.Numeric(12, 4), nullable=False)
    discount = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    item_type = db.Column(db.String(16), nullable=False, default="custom")  # product, service, fee, discount, tax, custom
    item_id = db.Column(db.String(64), nullable=True)

    # Position in the submitted items array
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    invoice = db.relationship("Invoice", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "description": self.description,
            "quantity": str(plain_decimal(self.quantity)) if self.quantity is not None else None,
            "unit_price": format_price(self.unit_price),
            "discount": format_price(self.discount),
            "tax_rate": str(bps_to_rate(self.tax_rate_bps)),
            "line_total": format_amount(self.line_total_cents),
            "item_type": self.item_type,
            "item_id": self.item_id,
            "sort_order": self.sort_order,
        }


class BillingPayment(db.Model):
    """
    Money received against a store, optionally applied to one invoice.

    Payments are immutable once created. A payment without an invoice is an
    unattached credit. Status is always "completed" in this core; gateway
    confirmation flows happen before a payment is recorded.
    """
    __tablename__ = "billing_payments"
    __table_args__ = (
        db.UniqueConstraint("store_id", "payment_number", name="uq_billing_payments_store_number"),
        db.Index("ix_billing_payments_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    # Human-readable number, e.g. "PAY-1791234567890"
    payment_number = db.Column(db.String(32), nullable=False)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    method = db.Column(db.String(16), nullable=False)  # cash, bank, qpay, card, online, credit
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    gateway_ref = db.Column(db.String(500), nullable=True)
    gateway_response = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store")
    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    def __repr__(self) -> str:
        return f"<BillingPayment id={self.id} number={self.payment_number!r} amount_cents={self.amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "invoice_id": self.invoice_id,
            "payment_number": self.payment_number,
            "amount": format_amount(self.amount_cents),
            "method": self.method,
            "status": self.status,
            "gateway_ref": self.gateway_ref,
            "gateway_response": self.gateway_response or {},
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }


class PaymentAllocation(db.Model):
    """
    How much of a payment is applied to an invoice.

    Every payment currently allocates its full amount to at most one invoice;
    the join row keeps split allocation possible without a schema change.
    """
    __tablename__ = "payment_allocations"
    __table_args__ = (
        db.Index("ix_payment_allocations_invoice", "invoice_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("billing_payments.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payment = db.relationship("BillingPayment", backref=db.backref("allocations", lazy=True))
    invoice = db.relationship("Invoice", backref=db.backref("allocations", lazy=True))

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "invoice_id": self.invoice_id,
            "amount": format_amount(self.amount_cents),
            "created_at": to_utc_z(self.created_at),
        }
