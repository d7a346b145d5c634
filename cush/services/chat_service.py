"""
cush/services/chat_service.py

Purpose: Imisi migration assistant

- Sends the conversation to OpenAI chat completions with a fixed system prompt
- Accepts prior turns as history (role: user | assistant)
- Upstream failures surface as ExternalServiceError
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from cush.core.config import settings
from cush.core.exceptions import ExternalServiceError
from cush.core.logging import get_logger
from utils.constants import IMISI_SYSTEM_PROMPT
from utils.time_utils import utc_now

logger = get_logger(__name__)

MAX_HISTORY_TURNS = 20


class ChatService:
    """Service wrapping the OpenAI client for the Imisi assistant"""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        if client is None and settings.OPENAI_API_KEY:
            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.HTTP_TIMEOUT_SECONDS * 4)
        self._client = client
        self.model = model or settings.OPENAI_MODEL

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def build_messages(self, message: str, history: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, str]]:
        """
        System prompt, then up to MAX_HISTORY_TURNS prior turns, then the new message.
        """
        system_prompt = f"{IMISI_SYSTEM_PROMPT}\n\nCurrent date: {utc_now().date().isoformat()}"
        messages = [{"role": "system", "content": system_prompt}]

        for turn in (history or [])[-MAX_HISTORY_TURNS:]:
            role = "user" if turn.get("role") == "user" else "assistant"
            content = str(turn.get("content") or "")
            if content:
                messages.append({"role": role, "content": content})

        messages.append({"role": "user", "content": message})
        return messages

    async def reply(self, message: str, history: Optional[List[Dict[str, Any]]] = None) -> str:
        """
        Generates the assistant's reply.

        Raises:
            ExternalServiceError: If OpenAI is not configured or the call fails
        """
        if not self.is_configured:
            raise ExternalServiceError("AI assistant is not configured")

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(message, history),
            )
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise ExternalServiceError("Failed to generate response")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.error(f"OpenAI returned empty content for model '{self.model}'")
            raise ExternalServiceError("Failed to generate response")
        return content.strip()


# Singleton instance
_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get or create the global chat service instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
