"""
Completion collaborator and prompt assembly for knowledge-augmented answers.

The retrieved context block is only ever one input string to the model
call; the model call itself knows nothing about retrieval.
"""

import logging
from typing import Awaitable, Callable, Optional

from openai import AsyncOpenAI, OpenAIError

from . import config
from .rag.errors import ModelUnavailable

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str, str], Awaitable[str]]

SYSTEM_PROMPT = (
    "You are Dragon, a helpful AI assistant. Answer in a friendly, well-structured way "
    "using Markdown. Include ready-to-use code snippets and step-by-step instructions. "
    "If knowledge base context is provided, use it preferentially and cite it briefly."
)


def build_user_prompt(context: str, question: str) -> str:
    """Prepend the context block to the question; the bare question if there is none."""
    if not context:
        return question
    return f"{context}\n\nUser question: {question}"


async def complete(
    system_prompt: str,
    user_prompt: str,
    client: Optional[AsyncOpenAI] = None,
) -> str:
    """Request a chat completion.

    Raises:
        ModelUnavailable: If no API key is configured or the request fails.
    """
    if client is None:
        if not config.OPENAI_API_KEY:
            raise ModelUnavailable("OPENAI_API_KEY not found in environment")
        client = AsyncOpenAI(api_key=config.OPENAI_API_KEY, base_url=config.OPENAI_BASE_URL)

    try:
        response = await client.chat.completions.create(
            model=config.COMPLETION_MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
    except OpenAIError as e:
        raise ModelUnavailable(f"Completion request failed: {e}") from e

    content = response.choices[0].message.content or ""
    logger.info(f"[COMPLETION] Received {len(content):,} chars from {config.COMPLETION_MODEL}")
    return content


async def answer(kb, question: str, top_k: int = None, complete_fn: CompleteFn = complete) -> str:
    """Answer a question with knowledge base context prepended when available."""
    context = await kb.retrieve_context(question, top_k)
    if context:
        logger.info(f"[COMPLETION] Prompt augmented with {len(context):,} chars of context")
    return await complete_fn(SYSTEM_PROMPT, build_user_prompt(context, question))
