"""
Parley: a multi-provider LLM chat client with compacting conversation history.

This package follows Parnas's information hiding principles,
where each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .chat import (
    ChatMessage,
    ConversationOrchestrator,
    Settings,
    SystemPrompt,
    UiState,
)
from .llm import GptModel, LLMProvider, ModelProvider, create_llm_provider
from .store import PreferenceStore, create_preference_store

__all__ = [
    "ChatMessage",
    "ConversationOrchestrator",
    "GptModel",
    "LLMProvider",
    "ModelProvider",
    "PreferenceStore",
    "Settings",
    "SystemPrompt",
    "UiState",
    "create_llm_provider",
    "create_preference_store",
]
