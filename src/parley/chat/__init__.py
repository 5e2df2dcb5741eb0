"""Chat session module for parley.

Holds the message model, settings and prompt management, and the
orchestrator that runs turns and compacts history.
"""

from .clock import MonotonicClock
from .history import ChatHistoryManager
from .models import ChatMessage, Settings, SystemPrompt, TurnSnapshot
from .orchestrator import ConversationOrchestrator, build_history_payload
from .settings import SettingsManager
from .state import Error, Idle, Loading, ObservableState, Success, UiState
from .system_prompts import SystemPromptManager

__all__ = [
    "ChatHistoryManager",
    "ChatMessage",
    "ConversationOrchestrator",
    "Error",
    "Idle",
    "Loading",
    "MonotonicClock",
    "ObservableState",
    "Settings",
    "SettingsManager",
    "Success",
    "SystemPrompt",
    "SystemPromptManager",
    "TurnSnapshot",
    "UiState",
    "build_history_payload",
]
