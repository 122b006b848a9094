"""Chat orchestration: one turn from stored context to persisted reply."""

from typing import List, Optional

import structlog

from ..domain.models import ChatMessage, generate_record_id
from ..repositories.base import RecordKind, RecordStore, record_key
from .completion import CompletionClient
from .context import HISTORY_WINDOW, assemble_context

logger = structlog.get_logger()


class ChatService:
    """Services chat turns against a record store and a completion gateway.

    Stateless between turns; the persisted log is the only state.
    """

    def __init__(
        self,
        store: RecordStore,
        gateway: CompletionClient,
        history_window: int = HISTORY_WINDOW,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.history_window = history_window

    async def history(self, user_id: str) -> List[ChatMessage]:
        records = await self.store.read(record_key(user_id, RecordKind.CHAT))
        return [ChatMessage.model_validate(r) for r in records]

    async def send_message(
        self,
        user_id: str,
        message: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ChatMessage:
        """Run one chat turn and return the bot reply.

        Nothing is written unless the gateway answers; on success the user
        message and the reply are appended together in a single write.
        """
        chat_key = record_key(user_id, RecordKind.CHAT)
        log = await self.store.read(chat_key)
        transactions = await self.store.read(record_key(user_id, RecordKind.TRANSACTIONS))
        loans = await self.store.read(record_key(user_id, RecordKind.LOANS))

        context = assemble_context(
            message,
            [ChatMessage.model_validate(r) for r in log],
            transaction_count=len(transactions),
            loan_count=len(loans),
            window=self.history_window,
        )

        reply = await self.gateway.complete(context, api_key=api_key, model=model)

        message_id = generate_record_id()
        user_message = ChatMessage(id=message_id, role="user", content=message)
        bot_message = ChatMessage(id=str(int(message_id) + 1), role="bot", content=reply)
        log.extend([user_message.to_record(), bot_message.to_record()])
        await self.store.write(chat_key, log)

        logger.info(
            "chat_turn_completed",
            user_id=user_id,
            context_size=len(context),
            user_message_length=len(message),
            reply_length=len(reply),
        )
        return bot_message
