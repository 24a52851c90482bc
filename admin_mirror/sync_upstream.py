from __future__ import annotations

import argparse
import logging

from admin_mirror.config import settings
from admin_mirror.db import SessionLocal, dispose_db, init_db
from admin_mirror.services.merge_policy import OrderMergePolicy, resolve_order_merge_policy
from admin_mirror.services.reconciler import sync_daily_code, sync_menu, sync_orders
from admin_mirror.services.upstream_factory import get_upstream_client


def run_syncs(*, orders: bool, menu: bool, daily_code: bool, policy: OrderMergePolicy) -> list[str]:
    client = get_upstream_client()
    lines: list[str] = []
    with SessionLocal() as db:
        if orders:
            result = sync_orders(db, client, policy=policy)
            lines.append(
                f'Order sync complete: fetched={result.fetched}, synced={result.synced}, failed={result.failed}'
            )
        if menu:
            result = sync_menu(db, client)
            lines.append(
                f'Menu sync complete: fetched={result.fetched}, synced={result.synced}, failed={result.failed}'
            )
        if daily_code:
            payload = sync_daily_code(db, client)
            lines.append(f"Daily code sync complete: date={payload.get('date')}")
    return lines


def main() -> None:
    parser = argparse.ArgumentParser(description='Pull upstream orders, menu and daily code into the admin mirror.')
    parser.add_argument('--orders', action='store_true', help='Sync the order mirror.')
    parser.add_argument('--menu', action='store_true', help='Sync the menu mirror.')
    parser.add_argument('--daily-code', action='store_true', help="Sync today's daily code.")
    parser.add_argument(
        '--cleared-policy',
        choices=[policy.value for policy in OrderMergePolicy],
        default=settings.order_sync_cleared_policy,
        help='How an order sync treats the locally set cleared flag on existing rows.',
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    run_all = not (args.orders or args.menu or args.daily_code)
    init_db()
    try:
        lines = run_syncs(
            orders=run_all or args.orders,
            menu=run_all or args.menu,
            daily_code=run_all or args.daily_code,
            policy=resolve_order_merge_policy(args.cleared_policy),
        )
    finally:
        dispose_db()
    for line in lines:
        print(line)


if __name__ == '__main__':
    main()
