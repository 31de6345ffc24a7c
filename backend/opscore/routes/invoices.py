# Overview: Flask API routes for invoices; parses input and returns JSON responses.

# backend/opscore/routes/invoices.py
"""
Invoice API Routes

DESIGN:
- POST creates header + line items in one transaction (201)
- GET list filters by status/party_type/party_id; invalid filter values are ignored
- GET detail returns items (by sort_order) and payments (newest first)
- Amounts are JSON strings with two decimals ("220.00")
"""

from decimal import Decimal

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_store
from ..services import invoice_service
from ..services.invoice_service import (
    INVOICE_STATUSES,
    PARTY_TYPES,
    SOURCE_TYPES,
    InvoiceError,
    InvoiceNotFoundError,
    InvoicePersistenceError,
)
from ..validation import (
    MAX_AMOUNT,
    ValidationError,
    parse_choice,
    parse_date,
    parse_decimal,
    parse_pagination,
    parse_text,
    require_object,
)


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _parse_create_payload(data: dict) -> dict:
    data = require_object(data)

    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty array")

    raw_source = data.get("source_type")
    tax_rate = data.get("tax_rate")
    discount_amount = data.get("discount_amount")

    return {
        "party_type": parse_choice(data.get("party_type"), "party_type", PARTY_TYPES),
        "party_id": parse_text(data.get("party_id"), "party_id", max_length=64),
        "source_type": "manual" if raw_source is None else parse_choice(raw_source, "source_type", SOURCE_TYPES),
        "source_id": parse_text(data.get("source_id"), "source_id", max_length=64),
        "items": items,
        "tax_rate": None if tax_rate is None else parse_decimal(
            tax_rate, "tax_rate", min_value=Decimal("0"), max_value=Decimal("100"), max_places=2,
        ),
        "discount_amount": None if discount_amount is None else parse_decimal(
            discount_amount, "discount_amount", min_value=Decimal("0"), max_value=MAX_AMOUNT, max_places=2,
        ),
        "due_date": parse_date(data.get("due_date"), "due_date"),
        "notes": parse_text(data.get("notes"), "notes", max_length=5000),
    }


@invoices_bp.post("")
@require_store
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "party_type": "customer",
        "party_id": "cust-42",  (optional)
        "source_type": "order",  (optional, default "manual")
        "source_id": "ORD-1001",  (optional)
        "items": [
            {"description": "Screen repair", "quantity": 2, "unit_price": 100,
             "discount": 0, "tax_rate": 10, "item_type": "service"}
        ],
        "tax_rate": 10,  (optional, non-zero overrides line rates)
        "discount_amount": 5,  (optional)
        "due_date": "2026-11-01",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Invoice with items
        400: Invalid input
        500: Persistence failure (nothing saved)
    """
    try:
        fields = _parse_create_payload(request.get_json(silent=True))
        invoice = invoice_service.create_invoice(store_id=g.store_id, **fields)
        return jsonify({"invoice": invoice.to_dict(include_items=True)}), 201

    except InvoicePersistenceError as e:
        current_app.logger.error("Invoice not saved: %s", e)
        return jsonify({"error": "Failed to create invoice"}), 500
    except (ValidationError, InvoiceError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("")
@require_store
def list_invoices_route():
    """
    List store invoices, newest first.

    Query params: status, party_type, party_id, limit, offset
    """
    args = request.args
    limit, offset = parse_pagination(
        args,
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )

    status = args.get("status")
    party_type = args.get("party_type")

    rows, total = invoice_service.list_invoices(
        g.store_id,
        status=status if status in INVOICE_STATUSES else None,
        party_type=party_type if party_type in PARTY_TYPES else None,
        party_id=args.get("party_id") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "data": [invoice.to_dict() for invoice in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@invoices_bp.get("/<int:invoice_id>")
@require_store
def get_invoice_route(invoice_id: int):
    try:
        return jsonify({"invoice": invoice_service.get_invoice_detail(invoice_id, store_id=g.store_id)}), 200
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
