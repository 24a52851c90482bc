"""Admin mutations that go to the upstream service first, then to the mirror.

The two steps are not atomic: a crash in between leaves upstream ahead of the
mirror until the next sync.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from admin_mirror.errors import UpstreamUnavailable, ValidationError
from admin_mirror.models import REFUNDED_ORDER_STATUS
from admin_mirror.schemas import MenuItemCreate, MenuItemPatch
from admin_mirror.services.merge_policy import menu_record_from_upstream
from admin_mirror.services.mirror_store import set_order_status, update_menu, upsert_menu
from admin_mirror.services.reconciler import store_daily_code
from admin_mirror.services.upstream_client import UpstreamApi

logger = logging.getLogger(__name__)


def _require(value: str | None, label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f'{label} required')
    return str(value).strip()


def update_order_status(db: Session, client: UpstreamApi, order_id: str | None, status: str | None) -> bool:
    """Forward a status change and record it locally.

    Unlike every other write-through here, the local write happens even when
    the upstream call fails. Returns whether upstream accepted the change.
    """
    order_id = _require(order_id, 'id')
    status = status or ''
    upstream_ok = True
    try:
        client.patch_order_status(order_id, status)
    except UpstreamUnavailable as exc:
        upstream_ok = False
        logger.warning(
            'Order %s status forward failed (status_code=%s); persisting locally anyway', order_id, exc.status_code
        )
    set_order_status(db, order_id, status)
    return upstream_ok


def refund_order(db: Session, client: UpstreamApi, order_id: str | None) -> None:
    order_id = _require(order_id, 'id')
    try:
        client.post_refund(order_id)
    except UpstreamUnavailable as exc:
        raise UpstreamUnavailable(
            str(exc), status_code=exc.status_code, body=exc.body, fallback='refund fail'
        ) from exc
    set_order_status(db, order_id, REFUNDED_ORDER_STATUS)


def create_menu_item(db: Session, client: UpstreamApi, item: MenuItemCreate) -> Any:
    _require(item.name, 'name')
    response = client.create_menu_item(item.upstream_payload())
    menu_id = item.id
    if menu_id is None and isinstance(response, dict) and response.get('id') is not None:
        menu_id = str(response['id'])
    if menu_id is None:
        logger.warning('Menu item %r created upstream without an id; mirror not updated', item.name)
        return response
    upsert_menu(db, menu_record_from_upstream(item.upstream_payload(), menu_id=menu_id))
    return response


def update_menu_item(db: Session, client: UpstreamApi, menu_id: str | None, patch: MenuItemPatch) -> bool:
    menu_id = _require(menu_id, 'id')
    client.patch_menu_item(menu_id, patch.upstream_payload())
    updated = update_menu(db, menu_id, patch.local_changes())
    if not updated:
        logger.info('Menu item %s is not mirrored yet; local update skipped', menu_id)
    return updated


def regenerate_daily_code(db: Session, client: UpstreamApi) -> Any:
    response = client.regenerate_daily_code()
    # The mutation response is partial; read back the full record.
    store_daily_code(db, client.fetch_daily_code())
    return response


def clear_daily_code(db: Session, client: UpstreamApi) -> Any:
    response = client.clear_daily_code()
    store_daily_code(db, client.fetch_daily_code())
    return response
