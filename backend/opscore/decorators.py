# Overview: Request decorators for API routes; store context and workflow registry access.

from functools import wraps
from flask import request, jsonify, g, current_app

from .extensions import db, WORKFLOW_REGISTRY_KEY
from .models import Store


STORE_HEADER = "X-Store-Id"


def require_store(f):
    """
    Establish the store context for a request.

    MULTI-TENANT: Sets g.store_id and g.org_id from the X-Store-Id header.
    Authentication is the calling layer's concern; this only scopes data.

    Returns 400 if the header is missing or not an integer, 404 if the store
    does not exist.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(STORE_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": f"{STORE_HEADER} header required"}), 400
        if not raw.isdigit():
            return jsonify({"error": f"{STORE_HEADER} must be an integer"}), 400

        store = db.session.get(Store, int(raw))
        if store is None:
            return jsonify({"error": f"Store {raw} not found"}), 404

        g.store_id = store.id
        g.org_id = store.org_id
        return f(*args, **kwargs)

    return decorated_function


def get_registry():
    """The workflow registry built by create_app()."""
    return current_app.extensions[WORKFLOW_REGISTRY_KEY]
