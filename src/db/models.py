from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class TransactionOrm(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    received_amount: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    received_currency: Mapped[str | None] = mapped_column(String, nullable=True)
    sent_amount: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    sent_currency: Mapped[str | None] = mapped_column(String, nullable=True)
    fee_amount: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    fee_currency: Mapped[str | None] = mapped_column(String, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
