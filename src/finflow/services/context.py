"""Prompt and conversation-window assembly for chat turns."""

from typing import List, Sequence

from ..domain.models import ChatMessage, CompletionMessage

HISTORY_WINDOW = 10

SYSTEM_PROMPT_TEMPLATE = """You are FinFlow Assistant, a helpful AI financial advisor. You help users manage their finances, understand their spending, and make informed financial decisions.

User's Financial Summary:
- Total Transactions: {transaction_count}
- Active Loans: {loan_count}

Be helpful, concise, and professional. Provide actionable financial advice when appropriate."""


def build_system_prompt(transaction_count: int, loan_count: int) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        transaction_count=transaction_count,
        loan_count=loan_count,
    )


def to_protocol_role(role: str) -> str:
    """Map a stored chat role onto the gateway's role names."""
    return "assistant" if role == "bot" else "user"


def assemble_context(
    message: str,
    history: Sequence[ChatMessage],
    transaction_count: int,
    loan_count: int,
    window: int = HISTORY_WINDOW,
) -> List[CompletionMessage]:
    """Build the outbound message list for one chat turn.

    The result is the system prompt, then the last ``window`` stored
    messages, then ``message`` as the user. History is bounded by count
    only; no token budgeting is done.
    """
    recent = list(history)[-window:] if window > 0 else []

    context = [
        CompletionMessage(
            role="system",
            content=build_system_prompt(transaction_count, loan_count),
        )
    ]
    context.extend(
        CompletionMessage(role=to_protocol_role(entry.role), content=entry.content)
        for entry in recent
    )
    context.append(CompletionMessage(role="user", content=message))
    return context
