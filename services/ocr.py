from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import types

from config.settings import Settings
from config.system_prompts import PACKAGE_TRANSCRIBER


logger = logging.getLogger(__name__)


class GeminiOCR:
    """Reads the printed text off a drug package photo with Gemini."""

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

    async def extract_text(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> Optional[str]:
        """Return the recognised text, or None when OCR is unavailable or finds nothing."""
        if not self.configured:
            logger.warning("GOOGLE_API_KEY not configured. OCR will not work.")
            return None
        if not image_bytes:
            return None

        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model,
                config=types.GenerateContentConfig(system_instruction=PACKAGE_TRANSCRIBER),
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type or "image/jpeg"),
                    "Transcribe all printed text on this package.",
                ],
            )
        except Exception:
            logger.exception("Gemini OCR request failed")
            return None

        text = (response.text or "").strip()
        return text or None
