# Overview: Flask API routes for workflow tables; exposes the registry, validator and action resolver.

# backend/opscore/routes/workflows.py
"""
Workflow API Routes

WHY: Callers (entity modules, UIs) need the same answers the record endpoint
enforces: which states exist, which moves are legal, what to offer next.

DESIGN:
- Read-only; the registry is immutable after start-up
- /validate answers 200 for both outcomes; the body carries valid/error
- Unknown entity types answer 404
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import get_registry
from ..services.transition_service import next_actions, validate_transition
from ..services.workflow_registry import UnknownWorkflowError
from ..validation import ValidationError, parse_text, require_object


workflows_bp = Blueprint("workflows", __name__, url_prefix="/api/workflows")


@workflows_bp.get("")
def list_workflows_route():
    registry = get_registry()
    workflows = [
        {
            "entity_type": name,
            "initial": registry[name].initial,
            "state_count": len(registry[name].states),
            "terminal_states": registry[name].terminal_states(),
        }
        for name in sorted(registry)
    ]
    return jsonify({"workflows": workflows, "count": len(workflows)}), 200


@workflows_bp.get("/<entity_type>")
def get_workflow_route(entity_type: str):
    try:
        workflow = get_registry().require(entity_type)
        return jsonify(workflow.to_dict()), 200
    except UnknownWorkflowError as e:
        return jsonify({"error": str(e)}), 404


@workflows_bp.get("/<entity_type>/actions")
def get_actions_route(entity_type: str):
    """
    Next actions from ?status=<state>.

    Returns:
        200: {entity_type, status, terminal, actions: [...]}
        400: status missing
        404: unknown workflow
    """
    try:
        workflow = get_registry().require(entity_type)
        status = parse_text(request.args.get("status"), "status", max_length=64, required=True)

        actions = next_actions(workflow, status)
        return jsonify({
            "entity_type": entity_type,
            "status": status,
            "known": workflow.has_state(status),
            "terminal": workflow.is_terminal(status),
            "actions": [a.to_dict() for a in actions],
        }), 200

    except UnknownWorkflowError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@workflows_bp.post("/<entity_type>/validate")
def validate_transition_route(entity_type: str):
    """
    Validate a status change without persisting anything.

    Request body:
    {
        "from": "received",
        "to": "diagnosed"
    }

    Returns:
        200: {"valid": true} or {"valid": false, "error": "Cannot transition from ..."}
        400: Invalid input
        404: Unknown workflow
    """
    try:
        workflow = get_registry().require(entity_type)
        data = require_object(request.get_json(silent=True))
        current = parse_text(data.get("from"), "from", max_length=64, required=True)
        requested = parse_text(data.get("to"), "to", max_length=64, required=True)

        result = validate_transition(workflow, current, requested)
        if not result.valid:
            current_app.logger.info("%s: %s", entity_type, result.error)
        return jsonify(result.to_dict()), 200

    except UnknownWorkflowError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
