from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from admin_mirror.errors import StorageError, UpstreamUnavailable, ValidationError
from admin_mirror.services.merge_policy import (
    OrderMergePolicy,
    daily_code_record_from_upstream,
    menu_record_from_upstream,
    order_record_from_upstream,
)
from admin_mirror.services.mirror_store import list_menu, upsert_daily_code, upsert_menu, upsert_order
from admin_mirror.services.upstream_client import UpstreamApi

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class SyncResult:
    fetched: int = 0
    synced: int = 0
    failed: int = 0
    first_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def record_failure(self, message: str) -> None:
        self.failed += 1
        if self.first_error is None:
            self.first_error = message


@dataclass
class MenuSyncResult(SyncResult):
    items: list[dict] = field(default_factory=list)


def sync_orders(
    db: Session,
    client: UpstreamApi,
    *,
    policy: OrderMergePolicy = OrderMergePolicy.OVERWRITE,
) -> SyncResult:
    """Pull the full order list (cleared included) and upsert it row by row.

    Rows are committed one at a time; a bad row is counted and skipped without
    undoing the rows before it. Orders missing from the snapshot stay as they are.
    """
    orders = client.fetch_orders(include_cleared=True)
    result = SyncResult(fetched=len(orders))
    now = _now()
    for index, payload in enumerate(orders):
        try:
            upsert_order(db, order_record_from_upstream(payload, now=now), policy=policy)
        except (ValidationError, StorageError) as exc:
            logger.warning('Order sync skipped row %d: %s', index, exc)
            result.record_failure(str(exc))
            continue
        result.synced += 1

    logger.info(
        'Order sync complete: fetched=%d synced=%d failed=%d policy=%s',
        result.fetched,
        result.synced,
        result.failed,
        policy.value,
    )
    return result


def sync_menu(db: Session, client: UpstreamApi) -> MenuSyncResult:
    """Upsert the upstream menu, then answer with the whole local table."""
    menu = client.fetch_menu()
    result = MenuSyncResult(fetched=len(menu))
    for index, payload in enumerate(menu):
        try:
            upsert_menu(db, menu_record_from_upstream(payload))
        except (ValidationError, StorageError) as exc:
            logger.warning('Menu sync skipped row %d: %s', index, exc)
            result.record_failure(str(exc))
            continue
        result.synced += 1

    result.items = list_menu(db)
    logger.info('Menu sync complete: fetched=%d synced=%d failed=%d', result.fetched, result.synced, result.failed)
    return result


def store_daily_code(db: Session, payload: Any) -> None:
    try:
        record = daily_code_record_from_upstream(payload)
    except ValidationError as exc:
        raise UpstreamUnavailable(f'Upstream returned an unusable daily code: {exc}') from exc
    upsert_daily_code(db, record)


def sync_daily_code(db: Session, client: UpstreamApi) -> dict:
    payload = client.fetch_daily_code()
    store_daily_code(db, payload)
    return payload
