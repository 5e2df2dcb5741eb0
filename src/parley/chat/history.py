import structlog
from pydantic import ValidationError

from ..store import PreferenceStore
from .models import ChatMessage, dump_messages, load_messages

logger = structlog.get_logger(__name__)

CHAT_HISTORY_KEY = "chat_history"


class ChatHistoryManager:
    """Persists the whole conversation as one JSON array.

    Each save replaces the stored document. Unreadable history loads as
    empty rather than failing start-up.
    """

    def __init__(self, store: PreferenceStore):
        self._store = store

    async def load(self) -> list[ChatMessage]:
        payload = await self._store.get(CHAT_HISTORY_KEY)
        if payload is None:
            return []
        try:
            return load_messages(payload)
        except ValidationError as e:
            logger.warning("history.corrupt", error=str(e))
            return []

    async def save(self, messages: list[ChatMessage]) -> None:
        await self._store.set(CHAT_HISTORY_KEY, dump_messages(messages))

    async def clear(self) -> None:
        await self._store.remove(CHAT_HISTORY_KEY)
