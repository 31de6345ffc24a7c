# Overview: Flask API routes for workflow records; status changes validated against the registry.

# backend/opscore/routes/records.py
"""
Workflow Record API Routes

WHY: The one place a status change is persisted. Every entity module goes
through here (or through record_service directly) so no status is written
without the workflow table's approval.

DESIGN:
- PATCH /status validates first; on rejection answers 400 with the validator
  message verbatim ("Cannot transition from 'x' to 'y'")
- Same-state PATCH is a 200 no-op
- All records are scoped to the X-Store-Id store
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import get_registry, require_store
from ..services import record_service
from ..services.record_service import RecordError, RecordNotFoundError
from ..services.transition_service import TransitionError
from ..services.workflow_registry import UnknownWorkflowError
from ..validation import ValidationError, parse_text, require_object


records_bp = Blueprint("records", __name__, url_prefix="/api/records")


@records_bp.post("")
@require_store
def create_record_route():
    """
    Create a workflow record.

    Request body:
    {
        "entity_type": "repair_order",
        "reference": "RO-1001",
        "status": "received",  (optional, defaults to the workflow's initial state)
        "notes": "..."  (optional)
    }

    Returns:
        201: Record created
        400: Invalid input or duplicate reference
        404: Unknown workflow
    """
    try:
        data = require_object(request.get_json(silent=True))
        entity_type = parse_text(data.get("entity_type"), "entity_type", max_length=64, required=True)
        reference = parse_text(data.get("reference"), "reference", max_length=64, required=True)
        status = parse_text(data.get("status"), "status", max_length=32)
        notes = parse_text(data.get("notes"), "notes", max_length=5000)

        record = record_service.create_record(
            get_registry(),
            store_id=g.store_id,
            entity_type=entity_type,
            reference=reference,
            status=status,
            notes=notes,
        )
        return jsonify({"record": record.to_dict()}), 201

    except UnknownWorkflowError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, RecordError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create record")
        return jsonify({"error": "Internal server error"}), 500


@records_bp.get("/<int:record_id>")
@require_store
def get_record_route(record_id: int):
    try:
        detail = record_service.get_record_detail(get_registry(), record_id, store_id=g.store_id)
        return jsonify({"record": detail}), 200
    except (RecordNotFoundError, UnknownWorkflowError) as e:
        return jsonify({"error": str(e)}), 404


@records_bp.patch("/<int:record_id>/status")
@require_store
def change_status_route(record_id: int):
    """
    Change a record's status.

    Request body:
    {
        "status": "diagnosed",
        "note": "..."  (optional, stored on the ledger event)
    }

    Returns:
        200: Record (updated, or unchanged for a same-state request)
        400: Transition rejected or invalid input
        404: Record not found
    """
    try:
        data = require_object(request.get_json(silent=True))
        status = parse_text(data.get("status"), "status", max_length=32, required=True)
        note = parse_text(data.get("note"), "note", max_length=255)

        record = record_service.change_status(
            get_registry(),
            record_id,
            status,
            store_id=g.store_id,
            note=note,
        )
        return jsonify({"record": record.to_dict()}), 200

    except (RecordNotFoundError, UnknownWorkflowError) as e:
        return jsonify({"error": str(e)}), 404
    except (TransitionError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change record status")
        return jsonify({"error": "Internal server error"}), 500
