"""Persistence for the mirror tables and the local override ledger.

Every write is a single statement committed on its own, so retrying any of
these operations is safe. Database failures are re-raised as ``StorageError``.
"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_mirror.errors import StorageError
from admin_mirror.models import AdminClear, AdminDailyCode, AdminMenu, AdminOrder, AdminQrHistory, AdminTable
from admin_mirror.services.merge_policy import (
    DailyCodeRecord,
    MenuRecord,
    OrderMergePolicy,
    OrderRecord,
    order_conflict_updates,
)
from admin_mirror.services.sort_utils import table_sort_key

QR_HISTORY_LIMIT = 50
MENU_PATCH_FIELDS = ('name', 'price', 'active', 'soldout')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _insert_for(db: Session):
    if db.get_bind().dialect.name == 'sqlite':
        return sqlite_insert
    return pg_insert


@contextmanager
def _storage_errors(db: Session) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f'Mirror storage failure: {exc}') from exc


@contextmanager
def _write(db: Session) -> Iterator[None]:
    with _storage_errors(db):
        yield
        db.commit()


# ---- Mirror tables ----


def upsert_order(db: Session, record: OrderRecord, *, policy: OrderMergePolicy = OrderMergePolicy.OVERWRITE) -> None:
    stmt = _insert_for(db)(AdminOrder).values(
        id=record.id,
        table_no=record.table_no,
        amount=record.amount,
        status=record.status,
        created_at=record.created_at,
        cleared=record.cleared,
        payment_key=record.payment_key,
        items=list(record.items),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['id'],
        set_=order_conflict_updates(stmt.excluded, policy, created_at_supplied=record.created_at_supplied),
    )
    with _write(db):
        db.execute(stmt)


def set_order_status(db: Session, order_id: str, status: str) -> bool:
    with _write(db):
        result = db.execute(update(AdminOrder).where(AdminOrder.id == order_id).values(status=status))
    return result.rowcount > 0


def set_order_cleared(db: Session, order_id: str, cleared: bool) -> bool:
    with _write(db):
        result = db.execute(update(AdminOrder).where(AdminOrder.id == order_id).values(cleared=cleared))
    return result.rowcount > 0


def mark_order_cleared(db: Session, order_id: str, cleared: bool) -> bool:
    """Admin clear/unclear of one order, visible in listings either way.

    The ledger entry decides the effective state, so it is written alongside
    the mirror column. Returns whether the order is mirrored.
    """
    mirrored = set_order_cleared(db, order_id, cleared)
    set_clear(db, order_id, cleared)
    return mirrored


def upsert_menu(db: Session, record: MenuRecord) -> None:
    now = _now()
    stmt = _insert_for(db)(AdminMenu).values(
        id=record.id,
        name=record.name,
        price=record.price,
        active=bool(record.active),
        soldout=bool(record.soldout),
        updated_at=now,
    )
    updates = {
        'name': stmt.excluded['name'],
        'price': stmt.excluded['price'],
        'updated_at': stmt.excluded['updated_at'],
    }
    # Flags upstream left out keep the stored (possibly locally edited) value.
    if record.active is not None:
        updates['active'] = stmt.excluded['active']
    if record.soldout is not None:
        updates['soldout'] = stmt.excluded['soldout']
    stmt = stmt.on_conflict_do_update(index_elements=['id'], set_=updates)
    with _write(db):
        db.execute(stmt)


def update_menu(db: Session, menu_id: str, changes: dict) -> bool:
    """Partial update: ``None`` or missing fields keep the stored value."""
    values = {key: changes[key] for key in MENU_PATCH_FIELDS if changes.get(key) is not None}
    values['updated_at'] = _now()
    with _write(db):
        result = db.execute(update(AdminMenu).where(AdminMenu.id == menu_id).values(**values))
    return result.rowcount > 0


def upsert_daily_code(db: Session, record: DailyCodeRecord) -> None:
    stmt = _insert_for(db)(AdminDailyCode).values(
        code_date=record.code_date,
        code=record.code,
        override=record.override,
        saved_at=_now(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['code_date'],
        set_={
            'code': stmt.excluded['code'],
            'override': stmt.excluded['override'],
            'saved_at': stmt.excluded['saved_at'],
        },
    )
    with _write(db):
        db.execute(stmt)


# ---- Override ledger ----


def set_clear(db: Session, order_id: str, cleared: bool) -> None:
    now = _now()
    stmt = _insert_for(db)(AdminClear).values(order_id=order_id, cleared=cleared, cleared_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=['order_id'],
        set_={'cleared': stmt.excluded['cleared'], 'cleared_at': stmt.excluded['cleared_at']},
    )
    with _write(db):
        db.execute(stmt)


def add_table(db: Session, table_no: str) -> None:
    stmt = _insert_for(db)(AdminTable).values(table_no=table_no, active=True)
    stmt = stmt.on_conflict_do_nothing(index_elements=['table_no'])
    with _write(db):
        db.execute(stmt)


def toggle_table(db: Session, table_no: str, active: bool) -> bool:
    with _write(db):
        result = db.execute(update(AdminTable).where(AdminTable.table_no == table_no).values(active=active))
    return result.rowcount > 0


def append_qr_history(db: Session, url: str, table_no: str | None) -> None:
    with _write(db):
        db.execute(AdminQrHistory.__table__.insert().values(url=url, table_no=table_no, created_at=_now()))


# ---- Queries ----


def list_clears(db: Session) -> list[str]:
    with _storage_errors(db):
        rows = db.execute(
            select(AdminClear.order_id).where(AdminClear.cleared.is_(True)).order_by(AdminClear.order_id.asc())
        ).all()
    return [row[0] for row in rows]


def list_tables(db: Session) -> list[dict]:
    with _storage_errors(db):
        rows = db.execute(select(AdminTable).execution_options(populate_existing=True)).scalars().all()
    ordered = sorted(rows, key=lambda row: table_sort_key(row.table_no))
    return [{'table_no': row.table_no, 'active': row.active} for row in ordered]


def _order_to_dict(order: AdminOrder, cleared: bool) -> dict:
    return {
        'id': order.id,
        'table_no': order.table_no,
        'amount': order.amount,
        'status': order.status,
        'created_at': order.created_at,
        'cleared': cleared,
        'payment_key': order.payment_key,
        'items': order.items or [],
    }


def list_orders(db: Session, *, table_no: str | None = None, include_cleared: bool = False) -> list[dict]:
    # A ledger entry overrides whatever the mirrored row says about cleared.
    effective_cleared = func.coalesce(AdminClear.cleared, AdminOrder.cleared)
    stmt = select(AdminOrder, effective_cleared).outerjoin(AdminClear, AdminClear.order_id == AdminOrder.id)
    if table_no:
        stmt = stmt.where(AdminOrder.table_no == table_no)
    if not include_cleared:
        stmt = stmt.where(effective_cleared.is_(False))
    stmt = stmt.order_by(AdminOrder.created_at.desc(), AdminOrder.id.asc()).execution_options(populate_existing=True)
    with _storage_errors(db):
        rows = db.execute(stmt).all()
    return [_order_to_dict(order, bool(cleared)) for order, cleared in rows]


def get_order(db: Session, order_id: str) -> AdminOrder | None:
    with _storage_errors(db):
        stmt = select(AdminOrder).where(AdminOrder.id == order_id).execution_options(populate_existing=True)
        return db.execute(stmt).scalar_one_or_none()


def _menu_to_dict(menu: AdminMenu) -> dict:
    return {
        'id': menu.id,
        'name': menu.name,
        'price': menu.price,
        'active': menu.active,
        'soldout': menu.soldout,
        'updated_at': menu.updated_at,
    }


def list_menu(db: Session) -> list[dict]:
    with _storage_errors(db):
        stmt = (
            select(AdminMenu)
            .order_by(AdminMenu.name.asc(), AdminMenu.id.asc())
            .execution_options(populate_existing=True)
        )
        rows = db.execute(stmt).scalars().all()
    return [_menu_to_dict(row) for row in rows]


def get_menu(db: Session, menu_id: str) -> AdminMenu | None:
    with _storage_errors(db):
        stmt = select(AdminMenu).where(AdminMenu.id == menu_id).execution_options(populate_existing=True)
        return db.execute(stmt).scalar_one_or_none()


def list_qr_history(db: Session, *, limit: int = QR_HISTORY_LIMIT) -> list[dict]:
    with _storage_errors(db):
        rows = db.execute(select(AdminQrHistory).order_by(AdminQrHistory.id.desc()).limit(limit)).scalars().all()
    return [
        {'id': row.id, 'url': row.url, 'table_no': row.table_no, 'created_at': row.created_at}
        for row in rows
    ]


def get_daily_code(db: Session, code_date: date) -> AdminDailyCode | None:
    with _storage_errors(db):
        stmt = (
            select(AdminDailyCode)
            .where(AdminDailyCode.code_date == code_date)
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one_or_none()
