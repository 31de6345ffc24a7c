# Overview: Flask CLI command groups for bootstrap, workflow inspection, and billing maintenance.

# backend/opscore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--store "Store Name"]
#   Idempotent bootstrap: creates the default organization and store.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Workflow inspection:
# - python -m flask workflows list
#   List registered entity types with initial and terminal states.
# - python -m flask workflows show repair_order
#   Print one transition table.
# - python -m flask workflows check repair_order received diagnosed
#   Run the transition validator; exits 1 when the change is rejected.
#
# Billing maintenance:
# - python -m flask billing reconcile --invoice-id 12
#   Recompute amount_paid/amount_due/status of an invoice from its allocations.

import click

from flask.cli import with_appcontext

from .decorators import get_registry
from .extensions import db
from .models import Organization, Store
from .services.payment_service import PaymentError, reconcile_invoice
from .services.transition_service import next_actions, validate_transition
from .services.workflow_registry import UnknownWorkflowError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--store', 'store_name', default='Main Store', help='Store name')
@with_appcontext
def init_system(org_name, org_code, store_name):
    """
    Initialize the default organization and store.

    MULTI-TENANT: The organization is the tenant root; the store is what
    X-Store-Id refers to. Safe to run repeatedly.
    """
    click.echo("START Initializing system...")

    db.create_all()

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    store = db.session.query(Store).filter_by(org_id=org.id, name=store_name).first()
    if not store:
        store = Store(org_id=org.id, name=store_name)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Org: {org.name})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    click.echo(f"\nUse header X-Store-Id: {store.id}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('workflows')
def workflows_group():
    """Workflow table inspection."""


@workflows_group.command('list')
@with_appcontext
def list_workflows():
    """List registered entity types."""
    registry = get_registry()

    click.echo("\n" + "="*80)
    click.echo(f"{'Entity type':<22} {'Initial':<14} {'States':<8} {'Terminal'}")
    click.echo("="*80)
    for name in sorted(registry):
        workflow = registry[name]
        click.echo(
            f"{name:<22} {workflow.initial:<14} {len(workflow.states):<8} "
            f"{', '.join(workflow.terminal_states())}"
        )
    click.echo("="*80)
    click.echo(f"{len(registry)} workflows\n")


@workflows_group.command('show')
@click.argument('entity_type')
@with_appcontext
def show_workflow(entity_type):
    """Print one transition table."""
    try:
        workflow = get_registry().require(entity_type)
    except UnknownWorkflowError as e:
        raise click.ClickException(str(e))

    click.echo(f"{workflow.name} (initial: {workflow.initial})")
    for state, spec in workflow.states.items():
        if spec.is_terminal:
            click.echo(f"  {state:<20} TERMINAL")
        else:
            click.echo(f"  {state:<20} -> {', '.join(spec.successors)}")


@workflows_group.command('check')
@click.argument('entity_type')
@click.argument('current')
@click.argument('requested')
@with_appcontext
def check_transition(entity_type, current, requested):
    """Validate CURRENT -> REQUESTED for ENTITY_TYPE (exit 1 when rejected)."""
    try:
        workflow = get_registry().require(entity_type)
    except UnknownWorkflowError as e:
        raise click.ClickException(str(e))

    result = validate_transition(workflow, current, requested)
    if not result.valid:
        click.echo(f"FAIL {result.error}")
        options = [action.state for action in next_actions(workflow, current)]
        if options:
            click.echo(f"     Allowed from '{current}': {', '.join(options)}")
        raise SystemExit(1)

    click.echo(f"PASS {entity_type}: '{current}' -> '{requested}'")


@click.group('billing')
def billing_group():
    """Billing maintenance commands."""


@billing_group.command('reconcile')
@click.option('--invoice-id', type=int, required=True, help='Invoice ID')
@with_appcontext
def reconcile(invoice_id):
    """Recompute an invoice's paid/due/status from its payment allocations."""
    try:
        invoice = reconcile_invoice(invoice_id)
    except PaymentError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(
        f"PASS Invoice {invoice.invoice_number}: paid {invoice.amount_paid}, "
        f"due {invoice.amount_due}, status {invoice.status}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(workflows_group)
    app.cli.add_command(billing_group)
