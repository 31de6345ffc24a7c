# Overview: Pytest coverage for invoice and billing payment endpoints.

from opscore.models import Invoice

from conftest import store_headers


def create_invoice(client, store, **overrides):
    payload = {
        'party_type': 'customer',
        'items': [{'description': 'Screen repair', 'quantity': 2, 'unit_price': 100, 'tax_rate': 10}],
    }
    payload.update(overrides)
    return client.post('/api/invoices', json=payload, headers=store_headers(store))


class TestInvoiceEndpoints:
    def test_create(self, client, db_session, store_a):
        response = create_invoice(client, store_a, party_id='cust-42', due_date='2026-11-01', notes='Walk-in')
        assert response.status_code == 201

        invoice = response.json['invoice']
        assert invoice['subtotal'] == '200.00'
        assert invoice['tax_amount'] == '20.00'
        assert invoice['total_amount'] == '220.00'
        assert invoice['amount_paid'] == '0.00'
        assert invoice['amount_due'] == '220.00'
        assert invoice['status'] == 'draft'
        assert invoice['source_type'] == 'manual'
        assert invoice['due_date'] == '2026-11-01'
        assert invoice['items'][0]['line_total'] == '220.00'
        assert invoice['items'][0]['quantity'] == '2'
        assert invoice['items'][0]['tax_rate'] == '10'

    def test_create_with_invoice_level_tax_and_discount(self, client, db_session, store_a):
        response = create_invoice(client, store_a, tax_rate=10, discount_amount='50')
        assert response.status_code == 201
        invoice = response.json['invoice']
        assert invoice['tax_amount'] == '15.00'
        assert invoice['discount_amount'] == '50.00'
        assert invoice['total_amount'] == '165.00'
        assert invoice['tax_rate'] == '10'

    def test_sub_cent_unit_price(self, client, db_session, store_a):
        response = create_invoice(
            client, store_a,
            items=[{'description': 'Bulk fastener', 'quantity': 3, 'unit_price': '0.333', 'tax_rate': 7.5}],
        )
        assert response.status_code == 201
        invoice = response.json['invoice']
        assert invoice['subtotal'] == '1.00'
        assert invoice['total_amount'] == '1.07'
        assert invoice['items'][0]['unit_price'] == '0.333'
        assert invoice['items'][0]['line_total'] == '1.07'

    def test_zero_invoice_rate_uses_line_rates(self, client, db_session, store_a):
        response = create_invoice(client, store_a, tax_rate=0)
        assert response.status_code == 201
        assert response.json['invoice']['tax_amount'] == '20.00'
        assert response.json['invoice']['total_amount'] == '220.00'
        assert response.json['invoice']['tax_rate'] is None

    def test_excess_precision_rejected(self, client, db_session, store_a):
        response = create_invoice(client, store_a, tax_rate='7.125')
        assert response.status_code == 400
        assert 'decimal places' in response.json['error']

        response = create_invoice(client, store_a, discount_amount='0.005')
        assert response.status_code == 400

    def test_empty_items_rejected(self, client, db_session, store_a):
        response = create_invoice(client, store_a, items=[])
        assert response.status_code == 400
        assert db_session.query(Invoice).count() == 0

    def test_invalid_line_rejected(self, client, db_session, store_a):
        response = create_invoice(client, store_a, items=[{'description': 'x', 'unit_price': -1}])
        assert response.status_code == 400
        assert 'items[0].unit_price' in response.json['error']

    def test_invalid_party_type(self, client, db_session, store_a):
        response = create_invoice(client, store_a, party_type='alien')
        assert response.status_code == 400

    def test_invalid_due_date(self, client, db_session, store_a):
        response = create_invoice(client, store_a, due_date='01/11/2026')
        assert response.status_code == 400

    def test_negative_line_rejected_by_default(self, client, db_session, store_a):
        response = create_invoice(client, store_a, items=[{'description': 'x', 'unit_price': 10, 'discount': 15}])
        assert response.status_code == 400
        assert 'exceeds line subtotal' in response.json['error']

    def test_list_with_filters(self, client, db_session, store_a, store_b):
        create_invoice(client, store_a, party_id='c1')
        create_invoice(client, store_a, party_type='supplier', party_id='s1')
        create_invoice(client, store_b, party_id='c1')

        response = client.get('/api/invoices', headers=store_headers(store_a))
        assert response.status_code == 200
        assert response.json['total'] == 2
        assert len(response.json['data']) == 2

        response = client.get('/api/invoices?party_type=supplier', headers=store_headers(store_a))
        assert response.json['total'] == 1
        assert response.json['data'][0]['party_id'] == 's1'

        response = client.get('/api/invoices?status=draft', headers=store_headers(store_a))
        assert response.json['total'] == 2

    def test_invalid_filters_ignored(self, client, db_session, store_a):
        create_invoice(client, store_a)
        response = client.get('/api/invoices?status=bogus&party_type=alien&limit=abc', headers=store_headers(store_a))
        assert response.status_code == 200
        assert response.json['total'] == 1

    def test_pagination(self, client, db_session, store_a):
        for _ in range(3):
            create_invoice(client, store_a)
        response = client.get('/api/invoices?limit=2&offset=0', headers=store_headers(store_a))
        assert response.json['total'] == 3
        assert len(response.json['data']) == 2
        assert response.json['limit'] == 2

    def test_detail_with_items_and_payments(self, client, db_session, store_a):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']
        client.post('/api/billing-payments', json={'amount': 100, 'method': 'cash', 'invoice_id': invoice_id},
                    headers=store_headers(store_a))

        response = client.get(f'/api/invoices/{invoice_id}', headers=store_headers(store_a))
        assert response.status_code == 200
        detail = response.json['invoice']
        assert len(detail['items']) == 1
        assert [p['amount'] for p in detail['payments']] == ['100.00']
        assert detail['status'] == 'partial'

    def test_detail_other_store_not_found(self, client, db_session, store_a, store_b):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']
        response = client.get(f'/api/invoices/{invoice_id}', headers=store_headers(store_b))
        assert response.status_code == 404


class TestBillingPaymentEndpoints:
    def test_settles_invoice(self, client, db_session, store_a):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']

        response = client.post(
            '/api/billing-payments',
            json={'amount': 220, 'method': 'cash', 'invoice_id': invoice_id},
            headers=store_headers(store_a),
        )
        assert response.status_code == 201
        assert response.json['payment']['status'] == 'completed'
        assert response.json['invoice']['amount_due'] == '0.00'
        assert response.json['invoice']['status'] == 'paid'

    def test_partial(self, client, db_session, store_a):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']

        response = client.post(
            '/api/billing-payments',
            json={'amount': '100', 'method': 'card', 'invoice_id': invoice_id},
            headers=store_headers(store_a),
        )
        assert response.status_code == 201
        assert response.json['invoice']['amount_due'] == '120.00'
        assert response.json['invoice']['status'] == 'partial'

    def test_unattached_credit(self, client, db_session, store_a):
        response = client.post(
            '/api/billing-payments',
            json={'amount': 50, 'method': 'qpay', 'gateway_ref': 'QP-1', 'notes': 'Deposit'},
            headers=store_headers(store_a),
        )
        assert response.status_code == 201
        assert response.json['payment']['invoice_id'] is None
        assert 'invoice' not in response.json

    def test_cross_store_invoice_rejected(self, client, db_session, store_a, store_b):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']
        response = client.post(
            '/api/billing-payments',
            json={'amount': 220, 'method': 'cash', 'invoice_id': invoice_id},
            headers=store_headers(store_b),
        )
        assert response.status_code == 400

    def test_amount_too_small(self, client, db_session, store_a):
        response = client.post('/api/billing-payments', json={'amount': 0, 'method': 'cash'},
                               headers=store_headers(store_a))
        assert response.status_code == 400

    def test_sub_cent_amount_rejected(self, client, db_session, store_a):
        response = client.post('/api/billing-payments', json={'amount': '10.005', 'method': 'cash'},
                               headers=store_headers(store_a))
        assert response.status_code == 400
        assert 'decimal places' in response.json['error']

    def test_invalid_method(self, client, db_session, store_a):
        response = client.post('/api/billing-payments', json={'amount': 1, 'method': 'barter'},
                               headers=store_headers(store_a))
        assert response.status_code == 400

    def test_gateway_response_must_be_object(self, client, db_session, store_a):
        response = client.post('/api/billing-payments',
                               json={'amount': 1, 'method': 'online', 'gateway_response': 'ok'},
                               headers=store_headers(store_a))
        assert response.status_code == 400

    def test_list_and_filters(self, client, db_session, store_a):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']
        client.post('/api/billing-payments', json={'amount': 10, 'method': 'cash', 'invoice_id': invoice_id},
                    headers=store_headers(store_a))
        client.post('/api/billing-payments', json={'amount': 20, 'method': 'card'},
                    headers=store_headers(store_a))

        response = client.get('/api/billing-payments', headers=store_headers(store_a))
        assert response.status_code == 200
        assert response.json['total'] == 2

        response = client.get(f'/api/billing-payments?invoice_id={invoice_id}', headers=store_headers(store_a))
        assert response.json['total'] == 1

        response = client.get('/api/billing-payments?method=card&status=completed', headers=store_headers(store_a))
        assert response.json['total'] == 1

        response = client.get('/api/billing-payments?method=barter&status=nope', headers=store_headers(store_a))
        assert response.json['total'] == 2

    def test_detail(self, client, db_session, store_a, store_b):
        invoice_id = create_invoice(client, store_a).json['invoice']['id']
        payment_id = client.post(
            '/api/billing-payments',
            json={'amount': 10, 'method': 'cash', 'invoice_id': invoice_id},
            headers=store_headers(store_a),
        ).json['payment']['id']

        response = client.get(f'/api/billing-payments/{payment_id}', headers=store_headers(store_a))
        assert response.status_code == 200
        assert response.json['payment']['allocations'][0]['invoice_id'] == invoice_id

        response = client.get(f'/api/billing-payments/{payment_id}', headers=store_headers(store_b))
        assert response.status_code == 404
