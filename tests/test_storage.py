"""Tests for artifact storage backends."""

import asyncio
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from newscast.errors import CollaboratorError, TransientError
from newscast.services.storage import LocalFileStorage, R2Storage


def client_error(status, code="Error"):
    return ClientError(
        {"Error": {"Code": code, "Message": "failed"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PutObject",
    )


class TestLocalFileStorage:
    """Tests for LocalFileStorage."""

    def test_put_writes_file(self, tmp_path):
        """Test bytes are written under the key and a file URL is returned."""
        storage = LocalFileStorage(str(tmp_path / "artifacts"))

        url = asyncio.run(storage.put("episodes/ep-1/audio.wav", b"RIFF", "audio/wav"))

        path = tmp_path / "artifacts" / "episodes" / "ep-1" / "audio.wav"
        assert path.read_bytes() == b"RIFF"
        assert url == path.resolve().as_uri()

    def test_public_base_url(self, tmp_path):
        """Test a configured public base URL is used for returned URLs."""
        storage = LocalFileStorage(str(tmp_path), public_base_url="https://media.example.com/")

        url = asyncio.run(storage.put("/episodes/ep-1/script.txt", b"Hello", "text/plain"))

        assert url == "https://media.example.com/episodes/ep-1/script.txt"

    @pytest.mark.parametrize("key", ["", "   ", "episodes/../../etc/passwd"])
    def test_invalid_keys_rejected(self, tmp_path, key):
        """Test empty keys and path traversal are rejected."""
        storage = LocalFileStorage(str(tmp_path))

        with pytest.raises(ValueError):
            asyncio.run(storage.put(key, b"x", "text/plain"))


class TestR2Storage:
    """Tests for R2Storage."""

    @pytest.fixture
    def client(self):
        return Mock()

    @pytest.fixture
    def storage(self, client):
        return R2Storage(
            bucket_name="newscast",
            endpoint_url="https://account.r2.cloudflarestorage.com/",
            aws_access_key_id="key",
            aws_secret_access_key="secret",
            client=client,
        )

    def test_put_object(self, storage, client):
        """Test the object is uploaded with its content type."""
        url = asyncio.run(storage.put("episodes/ep-1/audio.wav", b"RIFF", "audio/wav"))

        client.put_object.assert_called_once_with(
            Bucket="newscast",
            Key="episodes/ep-1/audio.wav",
            Body=b"RIFF",
            ContentType="audio/wav",
        )
        assert url == "https://account.r2.cloudflarestorage.com/newscast/episodes/ep-1/audio.wav"

    def test_public_url(self, client):
        """Test the public base URL takes precedence."""
        storage = R2Storage("newscast", "https://r2", "key", "secret", public_base_url="https://cdn.example.com", client=client)

        assert storage.url_for("a/b.srt") == "https://cdn.example.com/a/b.srt"

    def test_server_error_is_transient(self, storage, client):
        """Test a 5xx response from the store is retryable."""
        client.put_object.side_effect = client_error(503, "SlowDown")

        with pytest.raises(TransientError) as exc_info:
            asyncio.run(storage.put("k.wav", b"x", "audio/wav"))

        assert exc_info.value.status == 503

    def test_access_denied_is_permanent(self, storage, client):
        """Test a 403 response is not retryable."""
        client.put_object.side_effect = client_error(403, "AccessDenied")

        with pytest.raises(CollaboratorError) as exc_info:
            asyncio.run(storage.put("k.wav", b"x", "audio/wav"))

        assert exc_info.value.status == 403

    def test_connection_failure_is_transient(self, storage, client):
        """Test an unreachable endpoint is retryable."""
        client.put_object.side_effect = EndpointConnectionError(endpoint_url="https://r2")

        with pytest.raises(TransientError):
            asyncio.run(storage.put("k.wav", b"x", "audio/wav"))

    def test_credentials_required_without_client(self):
        """Test missing credentials are reported."""
        with pytest.raises(ValueError, match="S3_ENDPOINT_URL"):
            R2Storage("newscast", "", "", "")
