"""Script text generation with Gemini."""

import asyncio
import logging
from typing import Optional

from google.genai import errors as genai_errors
from google.genai import types

from newscast.errors import CollaboratorError, TransientError
from newscast.styles import StyleProfile

logger = logging.getLogger(__name__)


class GeminiTextGenerator:
    """Produces script text from a prompt using a Gemini model.

    The google-genai client is synchronous; calls run in a worker thread so
    the event loop is never blocked.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.8,
        max_output_tokens: int = 4096,
        client=None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = client

    def _get_client(self):
        """Get or create the Gemini client."""
        if self._client is None:
            import google.genai as genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _generate_sync(self, prompt: str) -> Optional[str]:
        client = self._get_client()
        response = client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            ),
        )
        return response.text

    async def generate(self, prompt: str, style: StyleProfile) -> str:
        """Generate text for a prompt.

        Returns:
            The generated text, or an empty string if the model returned none.

        Raises:
            TransientError: On 5xx responses from the API.
            CollaboratorError: On quota, authentication and other 4xx errors.
        """
        logger.info(
            f"Generating {style.name} script with {self.model} ({len(prompt)} char prompt)"
        )
        try:
            text = await asyncio.to_thread(self._generate_sync, prompt)
        except genai_errors.ServerError as e:
            raise TransientError(f"Gemini server error: {e}", status=e.code) from e
        except genai_errors.ClientError as e:
            raise CollaboratorError(f"Gemini request rejected: {e}", status=e.code) from e

        text = text or ""
        logger.info(f"Gemini returned {len(text)} characters")
        return text
