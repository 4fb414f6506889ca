"""Unit tests for WhisperAPIBackend against a local aiohttp server."""

import json
import asyncio
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from audioscribe.errors import RateLimited, TransportError, MalformedResponse
from audioscribe.transcription.whisper_backend import WhisperAPIBackend

ENDPOINT_PATH = "/v1/audio/transcriptions"


def call_backend(handler, audio_data=b"RIFF....WAVE", language="en"):
    """Run one transcribe() call against a server answering with handler."""
    received = {}

    async def recording_handler(request):
        form = await request.post()
        received["authorization"] = request.headers.get("Authorization")
        received["model"] = form.get("model")
        received["language"] = form.get("language")
        upload = form.get("file")
        received["filename"] = upload.filename
        received["content_type"] = upload.content_type
        received["audio"] = upload.file.read()
        return await handler(request)

    async def scenario():
        app = web.Application()
        app.router.add_post(ENDPOINT_PATH, recording_handler)
        server = TestServer(app)
        await server.start_server()
        backend = WhisperAPIBackend("test-key", endpoint=str(server.make_url(ENDPOINT_PATH)))
        try:
            return await backend.transcribe(audio_data, language)
        finally:
            await backend.close()
            await server.close()

    return asyncio.run(scenario()), received


@pytest.mark.unit
class TestWhisperAPIBackend:

    def test_successful_transcription(self):
        async def handler(request):
            return web.json_response({"text": "hello world"})

        text, received = call_backend(handler, audio_data=b"wav-bytes", language="fr")

        assert text == "hello world"
        assert received["authorization"] == "Bearer test-key"
        assert received["model"] == "whisper-1"
        assert received["language"] == "fr"
        assert received["filename"] == "segment.wav"
        assert received["content_type"] == "audio/wav"
        assert received["audio"] == b"wav-bytes"

    def test_empty_text_is_valid(self):
        async def handler(request):
            return web.json_response({"text": ""})

        text, _ = call_backend(handler)
        assert text == ""

    def test_429_raises_rate_limited(self):
        async def handler(request):
            return web.Response(status=429, text='{"error": "quota"}')

        with pytest.raises(RateLimited):
            call_backend(handler)

    def test_server_error_carries_body(self):
        async def handler(request):
            return web.Response(status=503, text="Service Unavailable")

        with pytest.raises(TransportError) as exc_info:
            call_backend(handler)

        assert exc_info.value.detail == "Service Unavailable"
        assert str(exc_info.value) == "Network error: Service Unavailable"

    def test_error_without_body_uses_status(self):
        async def handler(request):
            return web.Response(status=500)

        with pytest.raises(TransportError) as exc_info:
            call_backend(handler)

        assert exc_info.value.detail == "HTTP 500"

    def test_non_json_body_is_malformed(self):
        async def handler(request):
            return web.Response(status=200, text="<html>oops</html>")

        with pytest.raises(MalformedResponse):
            call_backend(handler)

    def test_missing_text_field_is_malformed(self):
        async def handler(request):
            return web.Response(status=200, text=json.dumps({"result": "hi"}))

        with pytest.raises(MalformedResponse):
            call_backend(handler)

    def test_non_string_text_is_malformed(self):
        async def handler(request):
            return web.json_response({"text": 42})

        with pytest.raises(MalformedResponse):
            call_backend(handler)

    def test_connection_failure_is_transport_error(self):
        async def scenario():
            # Nothing listens on port 9 (discard) on test machines
            backend = WhisperAPIBackend("test-key", endpoint="http://127.0.0.1:9/v1/audio/transcriptions")
            try:
                await backend.transcribe(b"data", "en")
            finally:
                await backend.close()

        with pytest.raises(TransportError):
            asyncio.run(scenario())

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            WhisperAPIBackend("")
