"""Tests for transactions, loans and document bookkeeping."""

from datetime import date, timedelta

import pytest

from finflow.domain.models import utc_date
from finflow.repositories.base import RecordKind, record_key
from finflow.services.records import RecordService


@pytest.mark.asyncio
async def test_transactions_append_in_order(store):
    records = RecordService(store)
    await records.add_transaction("u1", "Coffee", -4.5, "Food", date="2024-03-01")
    await records.add_transaction("u1", "Salary", 3000, "Income")

    transactions = await records.list_transactions("u1")

    assert [t.name for t in transactions] == ["Coffee", "Salary"]
    assert transactions[0].date == "2024-03-01"
    assert transactions[1].date == utc_date().isoformat()
    assert await records.list_transactions("u2") == []


@pytest.mark.asyncio
async def test_loan_terms(store):
    records = RecordService(store)
    loan = await records.create_loan("u1", "1000", "12", "auto")

    assert loan.amount == 1000
    assert loan.balance == 1000
    assert loan.interest_rate == 5.5
    assert loan.type == "auto"
    assert date.fromisoformat(loan.due_date) - utc_date() == timedelta(days=360)

    stored = await store.read(record_key("u1", RecordKind.LOANS))
    assert stored[0]["interestRate"] == 5.5
    assert stored[0]["dueDate"] == loan.due_date


@pytest.mark.asyncio
async def test_loan_without_purpose_is_personal(store):
    loan = await RecordService(store).create_loan("u1", 250.0, 3, "")
    assert loan.type == "Personal Loan"


@pytest.mark.asyncio
async def test_document_delete_leaves_others_untouched(store):
    records = RecordService(store)
    key = record_key("u1", RecordKind.DOCUMENTS)
    await store.write(key, [
        {"id": "1", "name": "a.pdf", "size": 10, "uploadDate": "2024-01-01T00:00:00"},
        {"id": "2", "name": "b.pdf", "size": 20, "uploadDate": "2024-01-02T00:00:00"},
        {"id": "3", "name": "c.pdf", "size": 30, "uploadDate": "2024-01-03T00:00:00"},
    ])

    await records.delete_document("u1", "2")

    assert [d.id for d in await records.list_documents("u1")] == ["1", "3"]


@pytest.mark.asyncio
async def test_deleting_unknown_document_is_a_noop(store):
    records = RecordService(store)
    document = await records.add_document("u1", "statement.pdf", 2048)

    await records.delete_document("u1", "does-not-exist")

    assert await records.list_documents("u1") == [document]


@pytest.mark.asyncio
async def test_spending_summary_uses_absolute_amounts(store):
    records = RecordService(store)
    await records.add_transaction("u1", "Groceries", -52.25, "Food")
    await records.add_transaction("u1", "Dinner", -30.10, "Food")
    await records.add_transaction("u1", "ETF", 500, "Investments")

    summary = await records.spending_summary("u1")

    assert summary["categoryTotals"] == {"Food": 82.35, "Investments": 500.0}
    assert summary["total"] == 582.35


@pytest.mark.asyncio
async def test_loan_due_date_counts_from_the_utc_day(store, monkeypatch):
    monkeypatch.setattr("finflow.services.records.utc_date", lambda: date(2024, 1, 31))

    loan = await RecordService(store).create_loan("u1", 500, 12, "car")

    assert loan.due_date == "2025-01-25"
    assert loan.created_at.endswith("+00:00")
