"""
Prompt loader for phase collaborators.

Loads system prompts from ``agents/prompts/<phase>_prompt.txt`` with caching.
"""

import logging
from pathlib import Path

from specforge.config import PhaseName
from specforge.exceptions import SpecforgeError

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"

# Global cache for loaded prompts
_prompt_cache: dict[str, str] = {}


class PromptLoadError(SpecforgeError):
    """Exception raised when a prompt file cannot be loaded."""

    pass


def load_phase_prompt(phase: PhaseName | str, use_cache: bool = True) -> str:
    """
    Load the system prompt for a phase.

    Args:
        phase: Phase whose prompt to load (e.g. ``PhaseName.DESIGN`` or ``"design"``)
        use_cache: Whether to use cached prompts (default: True)

    Returns:
        System prompt text

    Raises:
        PromptLoadError: If the prompt file cannot be found or read
    """
    name = PhaseName(phase).value

    if use_cache and name in _prompt_cache:
        logger.debug(f"Loading prompt for '{name}' from cache")
        return _prompt_cache[name]

    prompt_file = PROMPTS_DIR / f"{name}_prompt.txt"
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        error_msg = f"Prompt file not found for phase '{name}'. Expected file: {prompt_file}"
        logger.error(error_msg)
        raise PromptLoadError(error_msg) from None
    except OSError as e:
        error_msg = f"Could not read prompt for phase '{name}': {e}. File: {prompt_file}"
        logger.error(error_msg)
        raise PromptLoadError(error_msg) from e

    logger.info(f"Loaded prompt for '{name}' from {prompt_file}")
    _prompt_cache[name] = prompt_text
    return prompt_text


def clear_prompt_cache() -> None:
    """Clear the prompt cache (useful in tests or after editing prompts)."""
    _prompt_cache.clear()
