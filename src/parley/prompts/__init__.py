"""Prompt management module.

Externalizes prompts to text files for easy customization.
Prompts can be overridden by placing files in the working directory.
"""

from functools import lru_cache
from pathlib import Path

# Default prompts directory (package location)
_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Load a prompt from file.

    Search order:
    1. Current working directory: ./prompts/{name}.txt
    2. Package prompts directory: parley/prompts/{name}.txt

    Args:
        name: Prompt name (without .txt extension)

    Returns:
        Prompt text content

    Raises:
        FileNotFoundError: If prompt file not found in any location
    """
    filename = f"{name}.txt"

    local_path = Path.cwd() / "prompts" / filename
    if local_path.exists():
        return local_path.read_text(encoding="utf-8")

    package_path = _PROMPTS_DIR / filename
    if package_path.exists():
        return package_path.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Prompt '{name}' not found. Searched:\n"
        f"  - {local_path}\n"
        f"  - {package_path}"
    )


def get_default_system_prompt() -> str:
    """Get the system prompt installed on first run."""
    return load_prompt("default_system").strip()


def get_summary_instruction() -> str:
    """Get the instruction used when compacting old messages."""
    return load_prompt("summary").strip()


def clear_cache() -> None:
    """Clear the prompt cache (useful after modifying prompt files)."""
    load_prompt.cache_clear()


__all__ = [
    "load_prompt",
    "get_default_system_prompt",
    "get_summary_instruction",
    "clear_cache",
]
