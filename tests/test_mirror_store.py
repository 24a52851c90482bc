from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone

from fakes import make_session_factory

from admin_mirror.services.merge_policy import DailyCodeRecord, MenuRecord, OrderMergePolicy, OrderRecord
from admin_mirror.services.mirror_store import (
    add_table,
    append_qr_history,
    get_daily_code,
    get_menu,
    get_order,
    list_clears,
    list_menu,
    list_orders,
    list_qr_history,
    list_tables,
    mark_order_cleared,
    set_clear,
    set_order_cleared,
    toggle_table,
    update_menu,
    upsert_daily_code,
    upsert_menu,
    upsert_order,
)

BASE_TIME = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def _order(order_id: str, **overrides) -> OrderRecord:
    values = {
        'id': order_id,
        'table_no': '1',
        'amount': 10000,
        'status': 'received',
        'created_at': BASE_TIME,
        'cleared': False,
        'payment_key': '',
        'items': [],
    }
    values.update(overrides)
    return OrderRecord(**values)


class MirrorStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()

    def tearDown(self) -> None:
        self.db.close()


class OrderMirrorTests(MirrorStoreTestCase):
    def test_upsert_order_overwrites_existing_row(self) -> None:
        upsert_order(self.db, _order('A1', status='received'))
        upsert_order(self.db, _order('A1', status='paid', amount=12000, items=[{'name': 'Tea'}]))

        row = get_order(self.db, 'A1')
        self.assertEqual(row.status, 'paid')
        self.assertEqual(row.amount, 12000)
        self.assertEqual(row.items, [{'name': 'Tea'}])

    def test_overwrite_policy_clobbers_local_cleared(self) -> None:
        upsert_order(self.db, _order('A1'))
        set_order_cleared(self.db, 'A1', True)
        upsert_order(self.db, _order('A1', cleared=False), policy=OrderMergePolicy.OVERWRITE)
        self.assertFalse(get_order(self.db, 'A1').cleared)

    def test_preserve_policy_keeps_local_cleared(self) -> None:
        upsert_order(self.db, _order('A1'))
        set_order_cleared(self.db, 'A1', True)
        upsert_order(self.db, _order('A1', cleared=False, status='paid'), policy=OrderMergePolicy.PRESERVE_LOCAL_CLEARED)

        row = get_order(self.db, 'A1')
        self.assertTrue(row.cleared)
        self.assertEqual(row.status, 'paid')

    def test_preserve_policy_seeds_cleared_for_new_rows(self) -> None:
        upsert_order(self.db, _order('A1', cleared=True), policy=OrderMergePolicy.PRESERVE_LOCAL_CLEARED)
        self.assertTrue(get_order(self.db, 'A1').cleared)

    def test_list_orders_filters_by_table_newest_first(self) -> None:
        upsert_order(self.db, _order('A1', table_no='1', created_at=BASE_TIME))
        upsert_order(self.db, _order('A2', table_no='1', created_at=BASE_TIME + timedelta(minutes=5)))
        upsert_order(self.db, _order('B1', table_no='2'))

        rows = list_orders(self.db, table_no='1')
        self.assertEqual([row['id'] for row in rows], ['A2', 'A1'])

    def test_ledger_clear_excludes_order_from_default_listing(self) -> None:
        upsert_order(self.db, _order('A1'))
        self.assertEqual([row['id'] for row in list_orders(self.db)], ['A1'])
        self.assertFalse(list_orders(self.db)[0]['cleared'])

        set_clear(self.db, 'A1', True)

        self.assertEqual(list_orders(self.db), [])
        included = list_orders(self.db, include_cleared=True)
        self.assertEqual([row['id'] for row in included], ['A1'])
        self.assertTrue(included[0]['cleared'])

    def test_ledger_survives_order_upsert(self) -> None:
        upsert_order(self.db, _order('A1'))
        set_clear(self.db, 'A1', True)
        upsert_order(self.db, _order('A1', cleared=False, status='paid'))
        self.assertEqual(list_orders(self.db), [])

    def test_unclear_brings_order_back(self) -> None:
        upsert_order(self.db, _order('A1'))
        set_clear(self.db, 'A1', True)
        set_clear(self.db, 'A1', False)
        self.assertEqual([row['id'] for row in list_orders(self.db)], ['A1'])
        self.assertEqual(list_clears(self.db), [])

    def test_mirror_cleared_column_hides_order_without_ledger_entry(self) -> None:
        upsert_order(self.db, _order('A1', cleared=True))
        self.assertEqual(list_orders(self.db), [])

    def test_set_order_cleared_on_unknown_order_is_noop(self) -> None:
        self.assertFalse(set_order_cleared(self.db, 'missing', True))

    def test_mark_order_cleared_false_overrides_ledger_clear(self) -> None:
        upsert_order(self.db, _order('A1'))
        set_clear(self.db, 'A1', True)

        self.assertTrue(mark_order_cleared(self.db, 'A1', False))

        listed = list_orders(self.db)
        self.assertEqual([row['id'] for row in listed], ['A1'])
        self.assertFalse(listed[0]['cleared'])
        self.assertEqual(list_clears(self.db), [])

    def test_mark_order_cleared_true_hides_order(self) -> None:
        upsert_order(self.db, _order('A1'))
        self.assertTrue(mark_order_cleared(self.db, 'A1', True))
        self.assertEqual(list_orders(self.db), [])
        self.assertTrue(get_order(self.db, 'A1').cleared)


class LedgerTests(MirrorStoreTestCase):
    def test_list_clears_only_returns_cleared_ids(self) -> None:
        set_clear(self.db, 'B', True)
        set_clear(self.db, 'A', True)
        set_clear(self.db, 'C', False)
        self.assertEqual(list_clears(self.db), ['A', 'B'])

    def test_tables_list_in_numeric_aware_order(self) -> None:
        for table_no in ('2', '10', '1', 'vip'):
            add_table(self.db, table_no)
        self.assertEqual([row['table_no'] for row in list_tables(self.db)], ['1', '2', '10', 'vip'])
        self.assertTrue(all(row['active'] for row in list_tables(self.db)))

    def test_add_table_twice_keeps_one_row_and_its_state(self) -> None:
        add_table(self.db, '3')
        toggle_table(self.db, '3', False)
        add_table(self.db, '3')
        self.assertEqual(list_tables(self.db), [{'table_no': '3', 'active': False}])

    def test_toggle_unknown_table_is_noop(self) -> None:
        self.assertFalse(toggle_table(self.db, '99', False))
        self.assertEqual(list_tables(self.db), [])

    def test_qr_history_is_newest_first_and_bounded(self) -> None:
        for n in range(55):
            append_qr_history(self.db, f'http://h/?table={n}', str(n))

        rows = list_qr_history(self.db)
        self.assertEqual(len(rows), 50)
        self.assertEqual(rows[0]['table_no'], '54')
        self.assertEqual(rows[-1]['table_no'], '5')
        self.assertGreater(rows[0]['id'], rows[1]['id'])


class MenuAndDailyCodeTests(MirrorStoreTestCase):
    def test_list_menu_sorted_by_name(self) -> None:
        upsert_menu(self.db, MenuRecord(id='2', name='Tea', price=3000, active=True, soldout=False))
        upsert_menu(self.db, MenuRecord(id='1', name='Americano', price=4000, active=True, soldout=False))
        self.assertEqual([row['name'] for row in list_menu(self.db)], ['Americano', 'Tea'])

    def test_update_menu_keeps_fields_that_are_none(self) -> None:
        upsert_menu(self.db, MenuRecord(id='1', name='Tea', price=3000, active=True, soldout=False))

        self.assertTrue(update_menu(self.db, '1', {'name': None, 'price': None, 'active': False, 'soldout': None}))

        row = get_menu(self.db, '1')
        self.assertEqual((row.name, row.price, row.active, row.soldout), ('Tea', 3000, False, False))

    def test_upsert_menu_without_flags_keeps_stored_ones(self) -> None:
        upsert_menu(self.db, MenuRecord(id='1', name='Tea', price=3000, active=False, soldout=True))

        upsert_menu(self.db, MenuRecord(id='1', name='Green Tea', price=3500, active=None, soldout=None))

        row = get_menu(self.db, '1')
        self.assertEqual((row.name, row.price, row.active, row.soldout), ('Green Tea', 3500, False, True))

    def test_new_menu_row_without_flags_defaults_to_false(self) -> None:
        upsert_menu(self.db, MenuRecord(id='9', name='Scone', price=2500, active=None, soldout=None))
        row = get_menu(self.db, '9')
        self.assertEqual((row.active, row.soldout), (False, False))

    def test_update_unknown_menu_is_noop(self) -> None:
        self.assertFalse(update_menu(self.db, 'missing', {'active': False}))

    def test_daily_code_refetch_updates_in_place(self) -> None:
        upsert_daily_code(self.db, DailyCodeRecord(code_date=date(2026, 10, 18), code='1111', override=False))
        upsert_daily_code(self.db, DailyCodeRecord(code_date=date(2026, 10, 18), code='2222', override=True))

        row = get_daily_code(self.db, date(2026, 10, 18))
        self.assertEqual(row.code, '2222')
        self.assertTrue(row.override)
        self.assertIsNone(get_daily_code(self.db, date(2026, 10, 17)))


if __name__ == '__main__':
    unittest.main()
