"""Tests for prompt and conversation-window assembly."""

from finflow.domain.models import ChatMessage
from finflow.services.context import (
    HISTORY_WINDOW,
    assemble_context,
    build_system_prompt,
    to_protocol_role,
)


def make_log(length: int):
    return [
        ChatMessage(id=str(i), role="user" if i % 2 == 0 else "bot", content=f"message {i}")
        for i in range(length)
    ]


def test_system_prompt_carries_counts():
    prompt = build_system_prompt(transaction_count=7, loan_count=2)
    assert "FinFlow Assistant" in prompt
    assert "Total Transactions: 7" in prompt
    assert "Active Loans: 2" in prompt
    assert "concise" in prompt and "professional" in prompt


def test_role_translation():
    assert to_protocol_role("bot") == "assistant"
    assert to_protocol_role("user") == "user"
    assert to_protocol_role("anything-else") == "user"


def test_empty_history_gives_system_and_message():
    context = assemble_context("How do I budget?", [], transaction_count=0, loan_count=0)
    assert [m.role for m in context] == ["system", "user"]
    assert context[-1].content == "How do I budget?"


def test_long_history_is_trimmed_to_window():
    for length in (11, 25, 300):
        context = assemble_context("latest", make_log(length), transaction_count=3, loan_count=1)
        assert len(context) == HISTORY_WINDOW + 2
        assert context[0].role == "system"
        assert context[1].content == f"message {length - HISTORY_WINDOW}"
        assert context[-2].content == f"message {length - 1}"
        assert context[-1].content == "latest"


def test_short_history_is_kept_whole_and_roles_mapped():
    context = assemble_context("next", make_log(4), transaction_count=0, loan_count=0)
    assert [m.role for m in context] == ["system", "user", "assistant", "user", "assistant", "user"]


def test_custom_window():
    context = assemble_context("next", make_log(8), transaction_count=0, loan_count=0, window=3)
    assert [m.content for m in context[1:]] == ["message 5", "message 6", "message 7", "next"]
