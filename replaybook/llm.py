"""
Text-completion collaborator used for plan and code generation.
"""

import logging
import os
from typing import Callable, Optional

import openai

from replaybook.config import LLMConfig
from replaybook.errors import LLMError

logger = logging.getLogger(__name__)

AskLLM = Callable[[str], str]


def ask_llm(prompt: str, config: Optional[LLMConfig] = None) -> str:
    """
    Send a single user prompt and return the first completion's text.

    Raises:
        LLMError: If the API key is missing, the request fails, or no
            choice comes back
    """
    config = config or LLMConfig()
    api_key = os.environ.get(config.api_key_env)
    if not api_key:
        raise LLMError(f"Missing {config.api_key_env}")

    client = openai.OpenAI(api_key=api_key)
    logger.info("ask_llm: model=%s prompt_len=%d", config.model, len(prompt))
    try:
        response = client.chat.completions.create(
            model=config.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=config.temperature,
        )
    except openai.OpenAIError as e:
        raise LLMError(f"Request error: {e}") from e

    if not response.choices:
        raise LLMError("No LLM response choices returned")
    return response.choices[0].message.content or ""


def make_ask_llm(config: Optional[LLMConfig] = None) -> AskLLM:
    """Bind ``config`` so callers only pass the prompt."""
    def ask(prompt: str) -> str:
        return ask_llm(prompt, config)
    return ask
