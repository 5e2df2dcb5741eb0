"""Saved system prompts and the current selection."""

from uuid import uuid4

import structlog
from pydantic import TypeAdapter, ValidationError

from ..prompts import get_default_system_prompt
from ..store import PreferenceStore
from .models import SystemPrompt

logger = structlog.get_logger(__name__)

PROMPTS_KEY = "system_prompts"
CURRENT_PROMPT_ID_KEY = "current_prompt_id"

DEFAULT_PROMPT_ID = "default"
DEFAULT_PROMPT_NAME = "Chef Assistant"

_PROMPT_LIST = TypeAdapter(list[SystemPrompt])


class SystemPromptManager:
    """CRUD over the stored prompt list plus the current-prompt pointer.

    The list is stored as one JSON array; each change rewrites it.
    A list that fails to parse reads as empty.
    """

    def __init__(self, store: PreferenceStore):
        self._store = store

    async def _read(self) -> list[SystemPrompt]:
        payload = await self._store.get(PROMPTS_KEY)
        if payload is None:
            return []
        try:
            return _PROMPT_LIST.validate_json(payload)
        except ValidationError:
            logger.warning("prompts.corrupt_list")
            return []

    async def _write(self, prompts: list[SystemPrompt]) -> None:
        payload = _PROMPT_LIST.dump_json(prompts, by_alias=True).decode("utf-8")
        await self._store.set(PROMPTS_KEY, payload)

    async def initialize_default_prompt(self) -> None:
        """Install the built-in prompt on first run."""
        if await self._store.get(PROMPTS_KEY) is not None:
            return
        default = SystemPrompt(
            id=DEFAULT_PROMPT_ID,
            name=DEFAULT_PROMPT_NAME,
            content=get_default_system_prompt(),
            is_default=True,
        )
        await self._write([default])
        await self._store.set(CURRENT_PROMPT_ID_KEY, default.id)
        logger.info("prompts.initialized_default")

    async def all_prompts(self) -> list[SystemPrompt]:
        return await self._read()

    async def current_prompt_id(self) -> str | None:
        value = await self._store.get(CURRENT_PROMPT_ID_KEY)
        return value or None

    async def current_prompt(self) -> SystemPrompt | None:
        """Return the selected prompt, else the default one, else the first."""
        prompts = await self._read()
        current_id = await self.current_prompt_id()
        if current_id is not None:
            for prompt in prompts:
                if prompt.id == current_id:
                    return prompt
        for prompt in prompts:
            if prompt.is_default:
                return prompt
        return prompts[0] if prompts else None

    def create_prompt(self, name: str, content: str) -> SystemPrompt:
        """Build a new non-default prompt with a fresh id.

        Raises:
            ValueError: If name or content is blank
        """
        if not name.strip() or not content.strip():
            raise ValueError("Name and content cannot be empty")
        return SystemPrompt(id=str(uuid4()), name=name, content=content)

    async def add_prompt(self, prompt: SystemPrompt) -> None:
        """Append a prompt; the first prompt or a default one becomes current."""
        prompts = await self._read()
        if not prompts or prompt.is_default:
            await self._store.set(CURRENT_PROMPT_ID_KEY, prompt.id)
        prompts.append(prompt)
        await self._write(prompts)

    async def update_prompt(self, prompt: SystemPrompt) -> None:
        prompts = await self._read()
        updated = [prompt if existing.id == prompt.id else existing for existing in prompts]
        await self._write(updated)

    async def delete_prompt(self, prompt_id: str) -> None:
        """Remove a prompt; if it was current, the first remaining one takes over."""
        prompts = [prompt for prompt in await self._read() if prompt.id != prompt_id]
        if await self.current_prompt_id() == prompt_id:
            await self._store.set(CURRENT_PROMPT_ID_KEY, prompts[0].id if prompts else "")
        await self._write(prompts)

    async def set_current_prompt(self, prompt_id: str) -> None:
        await self._store.set(CURRENT_PROMPT_ID_KEY, prompt_id)
