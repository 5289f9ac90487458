"""LLM question answering over a stored document.

Talks to any OpenAI-compatible chat completions endpoint through the OpenAI
SDK. Calls are never retried: upstream failures go straight back to the
caller as UpstreamError with the raw upstream body attached.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import openai
from openai import OpenAI

from docuchat.config import PipelineConfig
from docuchat.errors import UpstreamError, UpstreamUnavailable

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an assistant that answers questions based only on the provided document context."


def client_ready(settings: PipelineConfig) -> Tuple[bool, str]:
    if not settings.llm_api_key:
        return False, "LLM API key not configured"
    return True, ""


def get_client(settings: PipelineConfig) -> OpenAI:
    return OpenAI(
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout,
        max_retries=0,
    )


def build_context(text: str, max_words: int) -> str:
    """Whitespace-split the stored text and keep at most `max_words` words."""
    words = (text or "").split()
    return " ".join(words[:max_words])


def build_messages(context: str, question: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Context:\n{context}\n\nQuestion: {question}"},
    ]


def complete(messages: List[Dict[str, Any]], settings: PipelineConfig, model: Optional[str] = None) -> str:
    """Send a chat completion and return the first choice's content ('' if absent)."""
    ok, msg = client_ready(settings)
    if not ok:
        raise UpstreamUnavailable(msg)

    model = model or settings.llm_model
    client = get_client(settings)
    try:
        res = client.chat.completions.create(model=model, messages=messages)
    except openai.APIStatusError as e:
        body = e.response.text
        logger.error("model:error status=%s model=%s detail=%s", e.status_code, model, body)
        raise UpstreamError("LLM API error", detail=body, upstream_status=e.status_code) from e
    except openai.APIConnectionError as e:
        logger.error("model:error model=%s error=%s: %s", model, type(e).__name__, e)
        raise UpstreamError("LLM API unreachable", detail=str(e)) from e

    choices = getattr(res, "choices", None) or []
    message = choices[0].message if choices else None
    return (getattr(message, "content", None) or "") if message is not None else ""


def answer_question(text: str, question: str, settings: PipelineConfig) -> str:
    full_text = (text or "").strip()
    context = build_context(full_text, settings.max_context_words)
    logger.info(
        "model:input original_chars=%d context_chars=%d context_words_cap=%d",
        len(full_text), len(context), settings.max_context_words,
    )
    answer = complete(build_messages(context, question), settings)
    logger.info("model:output chars=%d", len(answer))
    return answer
