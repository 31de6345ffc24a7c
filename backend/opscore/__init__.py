# backend/opscore/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate, WORKFLOW_REGISTRY_KEY
from .services.workflow_registry import WorkflowRegistry, build_default_registry



def create_app(config_object=None, *, registry: WorkflowRegistry | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Built once; read-only for the life of the process
    app.extensions[WORKFLOW_REGISTRY_KEY] = registry if registry is not None else build_default_registry()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.workflows import workflows_bp
    from .routes.records import records_bp
    from .routes.invoices import invoices_bp
    from .routes.billing_payments import billing_payments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(workflows_bp)
    app.register_blueprint(records_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(billing_payments_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
