from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from admin_mirror.config import settings
from admin_mirror.db import get_db
from admin_mirror.errors import ValidationError
from admin_mirror.schemas import (
    MenuItemCreate,
    MenuItemPatch,
    OrderClearRequest,
    OrderRefRequest,
    OrderStatusRequest,
    QrHistoryRequest,
    RefundRequest,
    TableAddRequest,
    TableToggleRequest,
)
from admin_mirror.services.merge_policy import resolve_order_merge_policy
from admin_mirror.services.mirror_store import (
    add_table,
    append_qr_history,
    get_daily_code,
    list_clears,
    list_orders,
    list_qr_history,
    list_tables,
    set_clear,
    mark_order_cleared,
    toggle_table,
)
from admin_mirror.services.reconciler import sync_daily_code, sync_menu, sync_orders
from admin_mirror.services.upstream_client import UpstreamApi
from admin_mirror.services.upstream_factory import get_upstream_client
from admin_mirror.services.url_utils import parse_table_from_url
from admin_mirror.services.write_through import (
    clear_daily_code,
    create_menu_item,
    refund_order,
    regenerate_daily_code,
    update_menu_item,
    update_order_status,
)

router = APIRouter(prefix='/adb', tags=['admin-db'])


def _required(value: str | None, label: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f'{label} required')
    return value.strip()


# ---- Override ledger ----


@router.get('/clears')
def clears(db: Session = Depends(get_db)) -> dict:
    return {'cleared': list_clears(db)}


@router.post('/clear')
def clear_order(body: OrderRefRequest, db: Session = Depends(get_db)) -> dict:
    set_clear(db, _required(body.order_id, 'orderId'), True)
    return {'ok': True}


@router.post('/unclear')
def unclear_order(body: OrderRefRequest, db: Session = Depends(get_db)) -> dict:
    set_clear(db, _required(body.order_id, 'orderId'), False)
    return {'ok': True}


@router.get('/tables')
def tables(db: Session = Depends(get_db)) -> list[dict]:
    return list_tables(db)


@router.post('/tables/add')
def tables_add(body: TableAddRequest, db: Session = Depends(get_db)) -> dict:
    add_table(db, _required(body.table_no, 'tableNo'))
    return {'ok': True}


@router.post('/tables/toggle')
def tables_toggle(body: TableToggleRequest, db: Session = Depends(get_db)) -> dict:
    toggle_table(db, _required(body.table_no, 'tableNo'), body.active)
    return {'ok': True}


@router.get('/qr-history')
def qr_history(db: Session = Depends(get_db)) -> list[dict]:
    return list_qr_history(db, limit=settings.qr_history_limit)


@router.post('/qr-history')
def qr_history_add(body: QrHistoryRequest, db: Session = Depends(get_db)) -> dict:
    url = _required(body.url, 'url')
    append_qr_history(db, url, parse_table_from_url(url))
    return {'ok': True}


# ---- Orders mirror ----


@router.post('/sync/orders')
def orders_sync(
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> dict:
    result = sync_orders(db, client, policy=resolve_order_merge_policy(settings.order_sync_cleared_policy))
    return {
        'ok': result.ok,
        'count': result.synced,
        'fetched': result.fetched,
        'failed': result.failed,
        'error': result.first_error,
    }


@router.get('/orders')
def orders(
    include_cleared: str = Query('0', alias='includeCleared'),
    table: str = Query(''),
    db: Session = Depends(get_db),
) -> list[dict]:
    return list_orders(db, table_no=table.strip() or None, include_cleared=include_cleared.strip() == '1')


@router.post('/order-status')
def order_status(
    body: OrderStatusRequest,
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> dict:
    upstream_ok = update_order_status(db, client, body.id, body.status)
    return {'ok': True, 'upstreamOk': upstream_ok}


@router.post('/order-clear')
def order_clear(body: OrderClearRequest, db: Session = Depends(get_db)) -> dict:
    mark_order_cleared(db, _required(body.id, 'id'), body.cleared)
    return {'ok': True}


@router.post('/refund')
def refund(
    body: RefundRequest,
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> dict:
    refund_order(db, client, body.id)
    return {'ok': True}


# ---- Menu mirror ----


@router.get('/menu')
def menu(
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> list[dict]:
    return sync_menu(db, client).items


@router.post('/sync/menu')
def menu_sync(
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> dict:
    result = sync_menu(db, client)
    return {
        'ok': result.ok,
        'count': result.synced,
        'fetched': result.fetched,
        'failed': result.failed,
        'error': result.first_error,
        'items': result.items,
    }


@router.post('/menu')
def menu_create(
    body: MenuItemCreate,
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> dict:
    create_menu_item(db, client, body)
    return {'ok': True}


@router.patch('/menu/{menu_id}')
def menu_update(
    menu_id: str,
    body: MenuItemPatch,
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
) -> dict:
    update_menu_item(db, client, menu_id, body)
    return {'ok': True}


# ---- Daily code mirror ----


@router.get('/daily-code')
def daily_code(
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
):
    return sync_daily_code(db, client)


@router.get('/daily-code/{code_date}')
def daily_code_for_date(code_date: date, db: Session = Depends(get_db)) -> dict:
    row = get_daily_code(db, code_date)
    if not row:
        raise HTTPException(status_code=404, detail='Daily code not mirrored for this date')
    return {'date': row.code_date, 'code': row.code, 'override': row.override, 'saved_at': row.saved_at}


@router.post('/daily-code/regen')
def daily_code_regen(
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
):
    return regenerate_daily_code(db, client)


@router.post('/daily-code/clear')
def daily_code_clear(
    db: Session = Depends(get_db),
    client: UpstreamApi = Depends(get_upstream_client),
):
    return clear_daily_code(db, client)
