"""Provider factory functions for CLI.

Centralizes creation of the preference store, provider clients and the
orchestrator from configuration. Hides wiring details from command
implementations.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from rich.console import Console

from ..chat import ChatHistoryManager, ConversationOrchestrator, SettingsManager, SystemPromptManager
from ..config import ParleyConfig
from ..llm import LLMProvider, ModelProvider, create_llm_provider
from ..store import PreferenceStore, create_preference_store

# Default console for output
_console = Console()


def get_store(config: ParleyConfig) -> PreferenceStore:
    """Create the preference store named by the configuration."""
    if config.store_backend == "sqlite":
        return create_preference_store("sqlite", path=config.db_path)
    return create_preference_store(config.store_backend)


def get_llm_providers(
    config: ParleyConfig,
    console: Console | None = None
) -> dict[ModelProvider, LLMProvider]:
    """Create a client for every provider that has credentials.

    Args:
        config: Loaded configuration
        console: Optional Rich console for output

    Returns:
        Provider clients keyed by vendor (possibly empty)
    """
    con = console or _console
    providers: dict[ModelProvider, LLMProvider] = {}

    if config.yandex_enabled:
        providers[ModelProvider.YANDEX] = create_llm_provider(
            ModelProvider.YANDEX,
            api_key=config.yandex_api_key,
            folder_id=config.yandex_folder_id,
        )
    if config.deepseek_enabled:
        providers[ModelProvider.DEEPSEEK] = create_llm_provider(
            ModelProvider.DEEPSEEK,
            api_key=config.deepseek_api_key,
        )

    if not providers:
        con.print(
            "[yellow]Warning: no provider credentials found "
            "(YANDEX_API_KEY/YANDEX_FOLDER_ID, DEEPSEEK_API_KEY)[/yellow]"
        )
    return providers


@dataclass
class Session:
    """Everything a command needs, connected and ready."""

    store: PreferenceStore
    settings: SettingsManager
    prompts: SystemPromptManager
    history: ChatHistoryManager
    orchestrator: ConversationOrchestrator


@asynccontextmanager
async def open_session(
    config: ParleyConfig,
    console: Console | None = None,
    with_providers: bool = True,
) -> AsyncIterator[Session]:
    """Connect the store, build the orchestrator and clean up afterwards."""
    store = get_store(config)
    providers = get_llm_providers(config, console) if with_providers else {}
    await store.connect()
    try:
        settings = SettingsManager(store)
        prompts = SystemPromptManager(store)
        history = ChatHistoryManager(store)
        orchestrator = ConversationOrchestrator(providers, settings, prompts, history)
        await orchestrator.initialize()
        yield Session(store, settings, prompts, history, orchestrator)
    finally:
        for provider in providers.values():
            await provider.close()
        await store.disconnect()
