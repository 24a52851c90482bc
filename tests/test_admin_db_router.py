from __future__ import annotations

import unittest

from fakes import FakeUpstream, make_session_factory
from fastapi.testclient import TestClient

from admin_mirror.db import get_db
from admin_mirror.main import app
from admin_mirror.services.upstream_factory import get_upstream_client


class AdminDbRouterTests(unittest.TestCase):
    def setUp(self) -> None:
        session_factory = make_session_factory()
        self.upstream = FakeUpstream(
            orders=[
                {'id': 'A1', 'tableNo': '1', 'amount': 12000, 'status': 'received', 'createdAt': '2026-10-18T09:00:00Z'},
                {'id': 'A2', 'tableNo': '2', 'amount': 3000, 'status': 'received', 'createdAt': '2026-10-18T09:10:00Z'},
            ],
            menu=[{'id': 1, 'name': 'Tea', 'price': 3000, 'active': True, 'soldout': False}],
        )

        def override_get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_upstream_client] = lambda: self.upstream
        # Not entered as a context manager, so the production lifespan never runs.
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_qr_history_derives_table_number(self) -> None:
        resp = self.client.post('/adb/qr-history', json={'url': 'http://h/?table=7'})
        self.assertEqual(resp.status_code, 200)

        history = self.client.get('/adb/qr-history').json()
        self.assertEqual(history[0]['url'], 'http://h/?table=7')
        self.assertEqual(history[0]['table_no'], '7')

    def test_qr_history_requires_url(self) -> None:
        resp = self.client.post('/adb/qr-history', json={})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.text, 'url required')

    def test_tables_listing_order(self) -> None:
        for table_no in ('2', '10', 1, 'vip'):
            self.assertEqual(self.client.post('/adb/tables/add', json={'tableNo': table_no}).status_code, 200)
        self.client.post('/adb/tables/toggle', json={'tableNo': '10', 'active': False})

        tables = self.client.get('/adb/tables').json()
        self.assertEqual([row['table_no'] for row in tables], ['1', '2', '10', 'vip'])
        self.assertEqual([row['active'] for row in tables], [True, True, False, True])

    def test_sync_then_clear_hides_order(self) -> None:
        sync = self.client.post('/adb/sync/orders').json()
        self.assertEqual((sync['ok'], sync['count'], sync['failed']), (True, 2, 0))

        self.assertEqual(self.client.post('/adb/clear', json={'orderId': 'A2'}).json(), {'ok': True})

        self.assertEqual(self.client.get('/adb/clears').json(), {'cleared': ['A2']})
        visible = self.client.get('/adb/orders').json()
        self.assertEqual([row['id'] for row in visible], ['A1'])
        everything = self.client.get('/adb/orders', params={'includeCleared': '1'}).json()
        self.assertEqual([row['id'] for row in everything], ['A2', 'A1'])
        by_table = self.client.get('/adb/orders', params={'includeCleared': '1', 'table': '1'}).json()
        self.assertEqual([row['id'] for row in by_table], ['A1'])

    def test_order_clear_false_restores_a_ledger_cleared_order(self) -> None:
        self.client.post('/adb/sync/orders')
        self.client.post('/adb/clear', json={'orderId': 'A2'})

        resp = self.client.post('/adb/order-clear', json={'id': 'A2', 'cleared': False})

        self.assertEqual(resp.json(), {'ok': True})
        visible = self.client.get('/adb/orders').json()
        self.assertEqual([row['id'] for row in visible], ['A2', 'A1'])
        self.assertEqual(self.client.get('/adb/clears').json(), {'cleared': []})

    def test_refund_failure_returns_upstream_body_as_bad_gateway(self) -> None:
        self.client.post('/adb/sync/orders')
        self.upstream.fail('post_refund', status_code=400, body='refund window closed')

        resp = self.client.post('/adb/refund', json={'id': 'A1'})

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.text, 'refund window closed')
        statuses = {row['id']: row['status'] for row in self.client.get('/adb/orders').json()}
        self.assertEqual(statuses['A1'], 'received')

    def test_refund_failure_without_body_falls_back_to_refund_fail(self) -> None:
        self.client.post('/adb/sync/orders')
        self.upstream.fail('post_refund', status_code=500, body='')

        resp = self.client.post('/adb/refund', json={'id': 'A1'})

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.text, 'refund fail')

    def test_order_status_reports_upstream_outcome(self) -> None:
        self.client.post('/adb/sync/orders')
        self.upstream.fail('patch_order_status')

        resp = self.client.post('/adb/order-status', json={'id': 'A1', 'status': 'cooking'})

        self.assertEqual(resp.json(), {'ok': True, 'upstreamOk': False})
        statuses = {row['id']: row['status'] for row in self.client.get('/adb/orders').json()}
        self.assertEqual(statuses['A1'], 'cooking')

    def test_menu_sync_and_partial_patch(self) -> None:
        menu = self.client.get('/adb/menu').json()
        self.assertEqual([item['name'] for item in menu], ['Tea'])

        resp = self.client.patch('/adb/menu/1', json={'active': False})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.upstream.called('patch_menu_item'), [('1', {'active': False})])

        counts = self.client.post('/adb/sync/menu').json()
        self.assertEqual((counts['count'], counts['failed']), (1, 0))

    def test_daily_code_mirror_by_date(self) -> None:
        self.assertEqual(self.client.get('/adb/daily-code/2026-10-18').status_code, 404)

        payload = self.client.get('/adb/daily-code').json()
        self.assertEqual(payload['code'], '1234')

        stored = self.client.get('/adb/daily-code/2026-10-18').json()
        self.assertEqual((stored['date'], stored['code'], stored['override']), ('2026-10-18', '1234', False))

    def test_sync_fetch_failure_is_bad_gateway(self) -> None:
        self.upstream.fail('fetch_orders', status_code=503, body='')

        resp = self.client.post('/adb/sync/orders')

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.text, 'api fail')

    def test_admin_config_exposes_bases(self) -> None:
        config = self.client.get('/admin-config').json()
        self.assertEqual(set(config), {'apiBase', 'orderBase'})


if __name__ == '__main__':
    unittest.main()
