from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import types

from config.settings import Settings
from config.system_prompts import SYMPTOM_ASSISTANT
from services.errors import AdapterFailure, ConfigurationError


logger = logging.getLogger(__name__)

NO_REPLY = "I apologize, but I could not generate a response."


class DiagnosisAssistant:
    """Symptom chat with Gemini. The whole conversation is sent on every turn."""

    def __init__(self, settings: Settings):
        self.api_key = settings.google_api_key
        self.model = settings.gemini_model
        self._client: Optional[genai.Client] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def _contents(history: list[dict]) -> list[types.Content]:
        return [
            types.Content(
                role="model" if turn["role"] == "assistant" else "user",
                parts=[types.Part.from_text(text=turn["content"])],
            )
            for turn in history
        ]

    async def reply(self, history: list[dict]) -> str:
        """
        Answer the last user turn of ``history``.

        Each turn is a dict with ``role`` ("user" or "assistant") and ``content``.
        Raises ConfigurationError without an API key and AdapterFailure when the
        Gemini call fails.
        """
        if not self.configured:
            raise ConfigurationError("GOOGLE_API_KEY is not configured. Symptom chat is unavailable.")

        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model,
                config=types.GenerateContentConfig(system_instruction=SYMPTOM_ASSISTANT),
                contents=self._contents(history),
            )
        except Exception as exc:
            logger.exception("Gemini diagnosis request failed")
            raise AdapterFailure("Failed to get diagnosis") from exc

        return (response.text or "").strip() or NO_REPLY
