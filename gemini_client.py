import google.generativeai as genai
from typing import Dict, List
from uuid import uuid4
import logging

from config import settings
from errors import CompletionError, CompletionNotConfiguredError
from prompts import prepare_chat_messages

logger = logging.getLogger(__name__)

# Gemini calls the assistant side of a conversation "model"
ROLE_MAP = {"user": "user", "assistant": "model"}


def get_gemini_client(system_instruction: str | None = None):
    """Initialize and return Gemini client."""
    if not settings.GEMINI_API_KEY:
        raise CompletionNotConfiguredError("Gemini API key not configured")

    genai.configure(api_key=settings.GEMINI_API_KEY)
    return genai.GenerativeModel(settings.GEMINI_MODEL, system_instruction=system_instruction)


def to_gemini_contents(messages: List[Dict]) -> tuple[str, List[Dict]]:
    """
    Split chat-completion style messages into a system instruction and
    Gemini `contents`.
    """
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    contents = [
        {"role": ROLE_MAP[m["role"]], "parts": [m["content"]]}
        for m in messages
        if m["role"] != "system"
    ]
    return "\n\n".join(system_parts), contents


def complete_chat(messages: List[Dict]) -> Dict:
    """
    Forward a conversation to Gemini and return the reply in chat-completion shape.

    Args:
        messages: List of {"role": "system"|"user"|"assistant", "content": str}

    Returns:
        {"id", "model", "choices": [{"index", "message", "finish_reason"}]}
    """
    system_instruction, contents = to_gemini_contents(prepare_chat_messages(messages))
    model = get_gemini_client(system_instruction=system_instruction or None)

    logger.info(f"[LLM] Calling {settings.GEMINI_MODEL} with {len(contents)} messages")
    try:
        response = model.generate_content(contents)
        reply = response.text.strip()
    except Exception as e:
        logger.error(f"[LLM] Gemini call failed: {str(e)}")
        raise CompletionError(str(e)) from e

    return {
        "id": f"chatcmpl-{uuid4().hex}",
        "model": settings.GEMINI_MODEL,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": reply},
                "finish_reason": "stop",
            }
        ],
    }
