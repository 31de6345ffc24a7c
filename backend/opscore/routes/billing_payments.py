# Overview: Flask API routes for billing payments; parses input and returns JSON responses.

# backend/opscore/routes/billing_payments.py
"""
Billing Payment API Routes

DESIGN:
- POST records a payment; with invoice_id it also settles that invoice in the
  same transaction (201 either way)
- A payment without invoice_id is an unattached credit
- GET list filters by invoice_id/status/method; invalid filter values are ignored
"""

from decimal import Decimal

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_store
from ..services import payment_service
from ..services.payment_service import (
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    PaymentError,
    PaymentNotFoundError,
    PaymentPersistenceError,
)
from ..validation import (
    MAX_AMOUNT,
    ValidationError,
    parse_choice,
    parse_decimal,
    parse_int,
    parse_text,
    parse_pagination,
    require_object,
)


billing_payments_bp = Blueprint("billing_payments", __name__, url_prefix="/api/billing-payments")


@billing_payments_bp.post("")
@require_store
def record_payment_route():
    """
    Record a payment.

    Request body:
    {
        "amount": 220,
        "method": "cash",
        "invoice_id": 12,  (optional)
        "gateway_ref": "QP-889",  (optional)
        "gateway_response": {...},  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Payment recorded (invoice settled when invoice_id given)
        400: Invalid input or invoice not found in this store
        500: Persistence failure (nothing saved)
    """
    try:
        data = require_object(request.get_json(silent=True))

        if data.get("amount") is None:
            raise ValidationError("amount is required")
        amount = parse_decimal(
            data["amount"], "amount", min_value=Decimal("0.01"), max_value=MAX_AMOUNT, max_places=2,
        )
        method = parse_choice(data.get("method"), "method", PAYMENT_METHODS)

        invoice_id = data.get("invoice_id")
        if invoice_id is not None:
            invoice_id = parse_int(invoice_id, "invoice_id")

        gateway_response = data.get("gateway_response")
        if gateway_response is not None and not isinstance(gateway_response, dict):
            raise ValidationError("gateway_response must be an object")

        payment = payment_service.record_payment(
            store_id=g.store_id,
            amount=amount,
            method=method,
            invoice_id=invoice_id,
            gateway_ref=parse_text(data.get("gateway_ref"), "gateway_ref", max_length=500),
            gateway_response=gateway_response,
            notes=parse_text(data.get("notes"), "notes", max_length=2000),
        )

        body = {"payment": payment.to_dict()}
        if payment.invoice is not None:
            body["invoice"] = payment.invoice.to_dict()
        return jsonify(body), 201

    except PaymentPersistenceError as e:
        current_app.logger.error("Payment not saved: %s", e)
        return jsonify({"error": "Failed to record payment"}), 500
    except (ValidationError, PaymentError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@billing_payments_bp.get("")
@require_store
def list_payments_route():
    """
    List store payments, newest first.

    Query params: invoice_id, status, method, limit, offset
    """
    args = request.args
    limit, offset = parse_pagination(
        args,
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )

    try:
        invoice_id = parse_int(args["invoice_id"], "invoice_id") if args.get("invoice_id") else None
    except ValidationError:
        invoice_id = None
    status = args.get("status")
    method = args.get("method")

    rows, total = payment_service.list_payments(
        g.store_id,
        invoice_id=invoice_id,
        status=status if status in PAYMENT_STATUSES else None,
        method=method if method in PAYMENT_METHODS else None,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "data": [payment.to_dict() for payment in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@billing_payments_bp.get("/<int:payment_id>")
@require_store
def get_payment_route(payment_id: int):
    try:
        return jsonify({"payment": payment_service.get_payment_detail(payment_id, store_id=g.store_id)}), 200
    except PaymentNotFoundError as e:
        return jsonify({"error": str(e)}), 404
