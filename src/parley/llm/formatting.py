"""Request framing and response cleaning shared by all provider clients."""

import math
import re
from datetime import datetime, timezone
from string import Template

from ..prompts import load_prompt
from .models import LLMMessage
from .registry import GptModel

MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 32000

# Fenced block with an optional language label, e.g. ```json\n...\n```
_FENCED_BLOCK = re.compile(r"^\s*```[a-zA-Z0-9_\-]*\s*\n(.*?)\s*\n?```\s*$", re.DOTALL)
_FENCE = "```"


def _strip_once(text: str) -> str:
    trimmed = text.strip()
    match = _FENCED_BLOCK.match(trimmed)
    if match:
        return match.group(1).strip()
    if trimmed.startswith(_FENCE) and trimmed.endswith(_FENCE) and len(trimmed) >= 2 * len(_FENCE):
        return trimmed[len(_FENCE):-len(_FENCE)].strip()
    return trimmed


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences a model wrapped around its answer.

    Handles a fenced block with or without a language label and bare
    leading/trailing triple backticks. Anything else comes back trimmed
    but otherwise unchanged. Nested wrappers are peeled until none is
    left, so applying the function twice gives the same result as once.

    Args:
        text: Raw model output

    Returns:
        The cleaned text
    """
    current = text
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return stripped
        current = stripped


def clamp_temperature(temperature: float, model: GptModel) -> float:
    """Clamp a temperature into the range accepted by the model's provider.

    Raises:
        ValueError: If temperature is NaN
    """
    if math.isnan(temperature):
        raise ValueError("Temperature must be a number")
    provider = model.provider
    return min(max(temperature, provider.min_temperature), provider.max_temperature)


def clamp_max_tokens(max_tokens: int) -> int:
    """Clamp a completion budget into [1, 32000]."""
    return min(max(max_tokens, MIN_MAX_TOKENS), MAX_MAX_TOKENS)


def format_system_prompt(
    system_prompt: str,
    model: GptModel,
    timestamp: str | None = None
) -> str:
    """Append the JSON response-format instruction to a system prompt.

    Args:
        system_prompt: Caller-supplied system prompt
        model: Model the request is addressed to (named in the envelope metadata)
        timestamp: ISO-8601 instant to embed (defaults to now, UTC)

    Returns:
        The system prompt followed by the response-format contract
    """
    instant = timestamp or datetime.now(timezone.utc).isoformat()
    instruction = Template(load_prompt("response_format")).safe_substitute(
        model=model.display_name,
        timestamp=instant,
    )
    return f"{system_prompt}\n{instruction}"


def build_request_messages(
    system_prompt: str,
    history: list[LLMMessage],
    prompt: str
) -> list[LLMMessage]:
    """Assemble system prompt, prior conversation and the current prompt."""
    return [
        LLMMessage(role="system", content=system_prompt),
        *history,
        LLMMessage(role="user", content=prompt),
    ]


def request_text(messages: list[LLMMessage]) -> str:
    """Flatten a request into the text submitted for tokenization."""
    return "\n\n".join(f"{msg.role}: {msg.content}" for msg in messages)
