"""Tests for Gemini script generation."""

import asyncio
from unittest.mock import Mock

import pytest
from google.genai import errors as genai_errors

from newscast.errors import CollaboratorError, TransientError
from newscast.services.gemini_text import GeminiTextGenerator
from newscast.styles import get_style


def api_error(error_class, code, status):
    return error_class(code, {"error": {"code": code, "message": "request failed", "status": status}})


@pytest.fixture
def mock_client():
    client = Mock()
    client.models.generate_content.return_value = Mock(text="Good evening.")
    return client


class TestGeminiTextGenerator:
    """Tests for GeminiTextGenerator.generate."""

    def test_generate_returns_text(self, mock_client):
        """Test the model's text is returned and settings are passed through."""
        generator = GeminiTextGenerator("key", model="gemini-test", temperature=0.5, client=mock_client)

        text = asyncio.run(generator.generate("Write a script.", get_style("news-anchor")))

        assert text == "Good evening."
        kwargs = mock_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "Write a script."
        assert kwargs["config"].temperature == 0.5
        assert kwargs["config"].max_output_tokens == 4096

    def test_empty_response_is_empty_string(self, mock_client):
        """Test a response without text becomes an empty string."""
        mock_client.models.generate_content.return_value = Mock(text=None)
        generator = GeminiTextGenerator("key", client=mock_client)

        assert asyncio.run(generator.generate("Prompt", get_style("emotional"))) == ""

    def test_server_error_is_transient(self, mock_client):
        """Test 5xx API errors map to TransientError."""
        mock_client.models.generate_content.side_effect = api_error(genai_errors.ServerError, 503, "UNAVAILABLE")
        generator = GeminiTextGenerator("key", client=mock_client)

        with pytest.raises(TransientError) as exc_info:
            asyncio.run(generator.generate("Prompt", get_style("emotional")))

        assert exc_info.value.status == 503

    def test_client_error_is_permanent(self, mock_client):
        """Test 4xx API errors map to CollaboratorError."""
        mock_client.models.generate_content.side_effect = api_error(
            genai_errors.ClientError, 403, "PERMISSION_DENIED"
        )
        generator = GeminiTextGenerator("key", client=mock_client)

        with pytest.raises(CollaboratorError) as exc_info:
            asyncio.run(generator.generate("Prompt", get_style("emotional")))

        assert exc_info.value.status == 403
