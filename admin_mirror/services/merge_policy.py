"""Coalesce rules that turn upstream payloads into mirror rows.

Upstream payloads are loosely typed; everything optional is filled from a safe
default here so the store only ever sees complete records.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from admin_mirror.errors import ValidationError
from admin_mirror.models import DEFAULT_ORDER_STATUS


class OrderMergePolicy(str, Enum):
    # Every column, cleared included, follows upstream on conflict.
    OVERWRITE = 'overwrite'
    # Upstream's cleared flag only seeds new rows; existing rows keep theirs.
    PRESERVE_LOCAL_CLEARED = 'preserve'


ORDER_UPSTREAM_COLUMNS = ('table_no', 'amount', 'status', 'created_at', 'payment_key', 'items')


@dataclass(frozen=True)
class OrderRecord:
    id: str
    table_no: str
    amount: int
    status: str
    created_at: datetime
    cleared: bool = False
    payment_key: str = ''
    items: list = field(default_factory=list)
    # False when upstream sent no createdAt and the sync time stands in for it.
    created_at_supplied: bool = True


@dataclass(frozen=True)
class MenuRecord:
    id: str
    name: str
    price: int
    # None means upstream did not send the flag; existing rows keep theirs.
    active: bool | None
    soldout: bool | None


@dataclass(frozen=True)
class DailyCodeRecord:
    code_date: date
    code: str
    override: bool


def resolve_order_merge_policy(value: str | OrderMergePolicy) -> OrderMergePolicy:
    if isinstance(value, OrderMergePolicy):
        return value
    try:
        return OrderMergePolicy(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f'Unknown order merge policy: {value!r}') from exc


def order_conflict_updates(
    excluded: Any,
    policy: OrderMergePolicy,
    *,
    created_at_supplied: bool = True,
) -> dict[str, Any]:
    """Columns an order upsert overwrites when the id already exists.

    ``OVERWRITE`` lets a sync clobber a locally set ``cleared`` with upstream's
    value (or ``False`` when upstream omits it). A ``created_at`` that was only
    defaulted to the sync time is not written over the stored one. The override
    ledger is never part of this statement.
    """
    columns = [column for column in ORDER_UPSTREAM_COLUMNS if created_at_supplied or column != 'created_at']
    updates = {column: excluded[column] for column in columns}
    if policy is OrderMergePolicy.OVERWRITE:
        updates['cleared'] = excluded['cleared']
    return updates


def _required_id(payload: dict, key: str = 'id') -> str:
    value = payload.get(key)
    if value is None or str(value).strip() == '':
        raise ValidationError(f'{key} is required')
    return str(value).strip()


def _to_int(value: Any, *, label: str) -> int:
    if value is None or value == '' or value is False:
        return 0
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f'{label} must be numeric, got {value!r}') from exc
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError(f'{label} must be a whole number, got {value!r}')
    return int(number)


def _to_text(value: Any, default: str = '') -> str:
    if value is None or value == '':
        return default
    return str(value)


def _timestamp_or_none(value: Any) -> datetime | None:
    if value is None or value == '' or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def parse_timestamp(value: Any, *, now: datetime) -> datetime:
    parsed = _timestamp_or_none(value)
    return now if parsed is None else parsed


def _optional_flag(payload: dict, key: str) -> bool | None:
    value = payload.get(key)
    if value is None:
        return None
    return bool(value)


def parse_items(value: Any) -> list:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def parse_code_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = _to_text(value).strip()
    if not raw:
        raise ValidationError('date is required')
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace('Z', '+00:00')).date()
    except ValueError as exc:
        raise ValidationError(f'Invalid date {raw!r}') from exc


def order_record_from_upstream(payload: dict, *, now: datetime) -> OrderRecord:
    if not isinstance(payload, dict):
        raise ValidationError('Order payload must be an object')
    created_at = _timestamp_or_none(payload.get('createdAt'))
    return OrderRecord(
        id=_required_id(payload),
        table_no=_to_text(payload.get('tableNo')),
        amount=_to_int(payload.get('amount'), label='amount'),
        status=_to_text(payload.get('status'), DEFAULT_ORDER_STATUS),
        created_at=now if created_at is None else created_at,
        cleared=bool(payload.get('cleared')),
        payment_key=_to_text(payload.get('paymentKey')),
        items=parse_items(payload.get('items')),
        created_at_supplied=created_at is not None,
    )


def menu_record_from_upstream(payload: dict, *, menu_id: str | None = None) -> MenuRecord:
    if not isinstance(payload, dict):
        raise ValidationError('Menu payload must be an object')
    price = _to_int(payload.get('price'), label='price')
    if price < 0:
        raise ValidationError('price cannot be negative')
    return MenuRecord(
        id=menu_id if menu_id is not None else _required_id(payload),
        name=_to_text(payload.get('name')),
        price=price,
        active=_optional_flag(payload, 'active'),
        soldout=_optional_flag(payload, 'soldout'),
    )


def daily_code_record_from_upstream(payload: dict) -> DailyCodeRecord:
    if not isinstance(payload, dict):
        raise ValidationError('Daily code payload must be an object')
    return DailyCodeRecord(
        code_date=parse_code_date(payload.get('date')),
        code=_to_text(payload.get('code')),
        override=bool(payload.get('override')),
    )
