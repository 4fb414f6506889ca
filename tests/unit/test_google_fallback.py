"""Unit tests for GoogleSpeechFallback with a mocked Speech client."""

import os
import asyncio
import pytest
from unittest.mock import Mock, patch

from google.api_core import exceptions as gax_exceptions

from audioscribe.errors import FallbackUnavailable, RecognitionFailed
from audioscribe.transcription.google_fallback import GoogleSpeechFallback


def speech_result(text):
    return Mock(alternatives=[Mock(transcript=text)])


@pytest.fixture
def fallback_with_client():
    fallback = GoogleSpeechFallback(credentials_path=None, locale="en-GB")
    fallback.client = Mock()
    return fallback


@pytest.mark.unit
class TestGoogleSpeechFallback:

    def test_locale_is_used_for_requests(self):
        fallback = GoogleSpeechFallback(locale="de-DE")
        assert fallback.locale == "de-DE"
        assert fallback.config.language_code == "de-DE"
        assert fallback.config.sample_rate_hertz == 16000

    def test_unconfigured_is_unavailable(self, wav_file):
        fallback = GoogleSpeechFallback(credentials_path=None)
        with pytest.raises(FallbackUnavailable):
            asyncio.run(fallback.recognize(wav_file()))

    def test_missing_credentials_file_is_unavailable(self, temp_data_dir, wav_file):
        fallback = GoogleSpeechFallback(credentials_path=os.path.join(temp_data_dir, "missing.json"))
        assert fallback.initialize() is False
        with pytest.raises(FallbackUnavailable):
            asyncio.run(fallback.recognize(wav_file()))

    def test_initialize_with_credentials(self, temp_data_dir):
        creds_path = os.path.join(temp_data_dir, "creds.json")
        with open(creds_path, 'w') as f:
            f.write("{}")

        module = 'audioscribe.transcription.google_fallback'
        with patch(f'{module}.service_account.Credentials.from_service_account_file') as from_file, \
                patch(f'{module}.speech.SpeechClient') as client_class:
            from_file.return_value = Mock(project_id="demo")
            fallback = GoogleSpeechFallback(credentials_path=creds_path)

            assert fallback.initialize() is True
            client_class.assert_called_once_with(credentials=from_file.return_value)
            assert fallback.client is client_class.return_value

    def test_joins_results(self, fallback_with_client, wav_file):
        fallback_with_client.client.recognize.return_value = Mock(
            results=[speech_result(" hello "), speech_result("world ")])

        text = asyncio.run(fallback_with_client.recognize(wav_file()))

        assert text == "hello world"
        kwargs = fallback_with_client.client.recognize.call_args.kwargs
        assert kwargs["config"] is fallback_with_client.config

    def test_no_speech_is_empty_text(self, fallback_with_client, wav_file):
        fallback_with_client.client.recognize.return_value = Mock(results=[])
        assert asyncio.run(fallback_with_client.recognize(wav_file())) == ""

    def test_api_error_is_recognition_failure(self, fallback_with_client, wav_file):
        fallback_with_client.client.recognize.side_effect = gax_exceptions.InternalServerError("boom")
        with pytest.raises(RecognitionFailed):
            asyncio.run(fallback_with_client.recognize(wav_file()))

    def test_unreadable_audio_is_recognition_failure(self, fallback_with_client, temp_data_dir):
        with pytest.raises(RecognitionFailed):
            asyncio.run(fallback_with_client.recognize(os.path.join(temp_data_dir, "gone.wav")))

    def test_cleanup_drops_client(self, fallback_with_client):
        fallback_with_client.cleanup()
        assert fallback_with_client.client is None
