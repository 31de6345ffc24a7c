# Overview: Pytest coverage for the flask CLI command groups.

from decimal import Decimal

from opscore.extensions import db
from opscore.models import Invoice, Organization, Store
from opscore.services.invoice_service import create_invoice
from opscore.services.payment_service import record_payment


class TestWorkflowCommands:
    def test_list(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['workflows', 'list'])
        assert result.exit_code == 0
        assert 'repair_order' in result.output
        assert '19 workflows' in result.output

    def test_show(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['workflows', 'show', 'laundry_order'])
        assert result.exit_code == 0
        assert 'laundry_order (initial: received)' in result.output
        assert 'TERMINAL' in result.output

    def test_show_unknown(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['workflows', 'show', 'spaceship'])
        assert result.exit_code != 0
        assert "Unknown workflow 'spaceship'" in result.output

    def test_check_accepts(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['workflows', 'check', 'repair_order', 'received', 'diagnosed'])
        assert result.exit_code == 0
        assert result.output.startswith('PASS')

    def test_check_rejects_with_allowed_targets(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['workflows', 'check', 'repair_order', 'received', 'approved'])
        assert result.exit_code == 1
        assert "FAIL Cannot transition from 'received' to 'approved'" in result.output
        assert 'diagnosed, cancelled' in result.output


class TestSystemCommands:
    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['system', 'init', '--org-code', 'CLI', '--store', 'Front Desk'])
        assert first.exit_code == 0
        assert 'Created organization' in first.output

        second = runner.invoke(args=['system', 'init', '--org-code', 'CLI', '--store', 'Front Desk'])
        assert second.exit_code == 0
        assert 'Using existing organization' in second.output
        assert 'Using existing store' in second.output

        db_session.expire_all()
        assert db_session.query(Organization).filter_by(code='CLI').count() == 1
        assert db_session.query(Store).filter_by(name='Front Desk').count() == 1


class TestBillingCommands:
    def test_reconcile(self, app, db_session, store_a, standard_items):
        invoice = create_invoice(store_id=store_a.id, party_type='customer', items=standard_items)
        record_payment(store_id=store_a.id, amount=Decimal('100'), method='cash', invoice_id=invoice.id)

        db.session.execute(
            Invoice.__table__.update()
            .where(Invoice.id == invoice.id)
            .values(amount_paid_cents=0, amount_due_cents=22000, status='draft')
        )
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['billing', 'reconcile', '--invoice-id', str(invoice.id)])
        assert result.exit_code == 0
        assert 'paid 100.00, due 120.00, status partial' in result.output

    def test_reconcile_missing_invoice(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['billing', 'reconcile', '--invoice-id', '987654'])
        assert result.exit_code == 1
        assert result.output.startswith('FAIL')
