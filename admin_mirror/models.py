from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, BigInteger, Boolean, CheckConstraint, Date, DateTime, Integer, Text, false, func, true
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

DEFAULT_ORDER_STATUS = 'received'
REFUNDED_ORDER_STATUS = 'refunded'


class Base(DeclarativeBase):
    pass


class AdminOrder(Base):
    __tablename__ = 'admin_orders'

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    table_no: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default='0')
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_ORDER_STATUS, server_default=DEFAULT_ORDER_STATUS
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    cleared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    payment_key: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class AdminMenu(Base):
    __tablename__ = 'admin_menus'
    __table_args__ = (CheckConstraint('price >= 0', name='ck_admin_menus_price_non_negative'),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    soldout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AdminDailyCode(Base):
    __tablename__ = 'admin_daily_codes'

    code_date: Mapped[date] = mapped_column(Date, primary_key=True)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AdminClear(Base):
    __tablename__ = 'admin_clears'

    order_id: Mapped[str] = mapped_column(Text, primary_key=True)
    cleared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    cleared_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AdminTable(Base):
    __tablename__ = 'admin_tables'

    table_no: Mapped[str] = mapped_column(Text, primary_key=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())


class AdminQrHistory(Base):
    __tablename__ = 'admin_qr_history'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    table_no: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
