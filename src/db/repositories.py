from __future__ import annotations

from datetime import timezone
from typing import Iterable

from sqlalchemy.orm import Session

from db import models
from domain.records import TransactionRecord


class TransactionRepository:
    """Read/write access to stored transaction rows."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, record: TransactionRecord) -> TransactionRecord:
        orm_record = self._to_orm(record)
        self._session.add(orm_record)
        self._session.commit()
        self._session.refresh(orm_record)
        return self._to_domain(orm_record)

    def create_many(self, records: Iterable[TransactionRecord]) -> None:
        self._session.add_all([self._to_orm(record) for record in records])
        self._session.commit()

    def get(self, record_id: str) -> TransactionRecord | None:
        orm_record = self._session.get(models.TransactionOrm, record_id)
        if orm_record is None:
            return None
        return self._to_domain(orm_record)

    def list(self) -> list[TransactionRecord]:
        orm_records = (
            self._session.query(models.TransactionOrm)
            .order_by(models.TransactionOrm.date.asc(), models.TransactionOrm.id.asc())
            .all()
        )
        return [self._to_domain(record) for record in orm_records]

    @staticmethod
    def _to_orm(record: TransactionRecord) -> models.TransactionOrm:
        # SQLite drops the offset, so always persist UTC.
        return models.TransactionOrm(
            id=record.id,
            date=record.date.astimezone(timezone.utc),
            type=record.type.value,
            received_amount=record.received_amount,
            received_currency=record.received_currency,
            sent_amount=record.sent_amount,
            sent_currency=record.sent_currency,
            fee_amount=record.fee_amount,
            fee_currency=record.fee_currency,
            price=record.price,
        )

    @staticmethod
    def _to_domain(orm_record: models.TransactionOrm) -> TransactionRecord:
        timestamp = orm_record.date
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return TransactionRecord(
            id=orm_record.id,
            date=timestamp,
            type=orm_record.type,
            received_amount=orm_record.received_amount,
            received_currency=orm_record.received_currency,
            sent_amount=orm_record.sent_amount,
            sent_currency=orm_record.sent_currency,
            fee_amount=orm_record.fee_amount,
            fee_currency=orm_record.fee_currency,
            price=orm_record.price,
        )
