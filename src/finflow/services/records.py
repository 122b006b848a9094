"""Transactions, loans and document metadata kept as per-user sequences."""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional, Type, TypeVar

import structlog

from ..domain.models import Document, Loan, Record, Transaction, today, utc_date, utc_timestamp
from ..repositories.base import RecordKind, RecordStore, record_key

logger = structlog.get_logger()

DEFAULT_INTEREST_RATE = 5.5
DAYS_PER_MONTH = 30

R = TypeVar("R", bound=Record)


class RecordService:
    """CRUD over one user's record sequences.

    Every append is a full read, an in-memory append and a full write.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def _list(self, user_id: str, kind: RecordKind, model: Type[R]) -> List[R]:
        records = await self.store.read(record_key(user_id, kind))
        return [model.model_validate(r) for r in records]

    async def _append(self, user_id: str, kind: RecordKind, record: Record) -> None:
        key = record_key(user_id, kind)
        records = await self.store.read(key)
        records.append(record.to_record())
        await self.store.write(key, records)
        logger.info("record_appended", kind=kind.value, record_id=record.id, count=len(records))

    async def list_transactions(self, user_id: str) -> List[Transaction]:
        return await self._list(user_id, RecordKind.TRANSACTIONS, Transaction)

    async def add_transaction(
        self, user_id: str, name: str, amount: float, category: str, date: Optional[str] = None
    ) -> Transaction:
        transaction = Transaction(name=name, amount=amount, category=category, date=date or today())
        await self._append(user_id, RecordKind.TRANSACTIONS, transaction)
        return transaction

    async def spending_summary(self, user_id: str) -> dict:
        """Absolute amounts totalled per category."""
        totals: Dict[str, float] = defaultdict(float)
        for transaction in await self.list_transactions(user_id):
            totals[transaction.category] += abs(transaction.amount)
        category_totals = {category: round(total, 2) for category, total in totals.items()}
        return {
            "total": round(sum(totals.values()), 2),
            "categoryTotals": category_totals,
        }

    async def list_loans(self, user_id: str) -> List[Loan]:
        return await self._list(user_id, RecordKind.LOANS, Loan)

    async def create_loan(self, user_id: str, amount, duration, purpose: Optional[str]) -> Loan:
        """Open a loan at the fixed rate, due ``duration`` 30-day months from now."""
        principal = float(amount)
        months = int(duration)
        due = utc_date() + timedelta(days=months * DAYS_PER_MONTH)
        loan = Loan(
            type=purpose or "Personal Loan",
            amount=principal,
            balance=principal,
            interest_rate=DEFAULT_INTEREST_RATE,
            due_date=due.isoformat(),
            created_at=utc_timestamp(),
        )
        await self._append(user_id, RecordKind.LOANS, loan)
        return loan

    async def list_documents(self, user_id: str) -> List[Document]:
        return await self._list(user_id, RecordKind.DOCUMENTS, Document)

    async def add_document(self, user_id: str, name: str, size: int) -> Document:
        document = Document(name=name, size=size, upload_date=utc_timestamp())
        await self._append(user_id, RecordKind.DOCUMENTS, document)
        return document

    async def delete_document(self, user_id: str, document_id: str) -> None:
        """Drop ``document_id`` by filtering and rewriting the whole sequence."""
        key = record_key(user_id, RecordKind.DOCUMENTS)
        documents = await self.store.read(key)
        remaining = [d for d in documents if d.get("id") != document_id]
        await self.store.write(key, remaining)
        logger.info(
            "document_deleted",
            document_id=document_id,
            removed=len(documents) - len(remaining),
        )
