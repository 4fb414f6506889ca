"""Integration tests: capture → rotation → session manager → queue → backends."""

import os
import time
import asyncio
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import ScriptedBackend, ScriptedFallback, RecordingSleep, write_wav
from audioscribe.audio.audio_pub import RecorderPublisher
from audioscribe.audio.capture import AudioCapture
from audioscribe.audio.permission import MicrophonePermission, PermissionState
from audioscribe.models.segment import SegmentStatus
from audioscribe.services.segment_rotation import SegmentRotationController, RecorderState
from audioscribe.services.session_manager import SessionManager
from audioscribe.storage.file_manager import FileManager
from audioscribe.storage.recording_state import RecordingStateStore
from audioscribe.storage.repository import JsonSessionRepository
from audioscribe.transcription.publisher import TranscriptionPublisher
from audioscribe.transcription.queue import TranscriptionQueue
from audioscribe.transcription.whisper_backend import WhisperAPIBackend


class Pipeline:
    """All components wired through pub/sub on test-only topics."""

    def __init__(self, data_dir, backend, fallback=None, capture=None):
        self.file_manager = FileManager(data_dir)
        self.repository = JsonSessionRepository(self.file_manager)
        self.sleep = RecordingSleep()
        self.queue = TranscriptionQueue(
            backend=backend,
            fallback=fallback,
            repository=self.repository,
            result_callback=TranscriptionPublisher(topic="it.settled").get_callback(),
            sleep=self.sleep,
        )
        self.session_manager = SessionManager(
            repository=self.repository,
            queue=self.queue,
            file_manager=self.file_manager,
            segment_topic="it.segment_finished",
            settled_topic="it.settled",
        )
        self.state_store = RecordingStateStore(str(self.file_manager.recording_state_path))
        self.capture = capture or AudioCapture()
        self.controller = SegmentRotationController(
            capture=self.capture,
            file_manager=self.file_manager,
            state_store=self.state_store,
            permission=MicrophonePermission(initial_state=PermissionState.GRANTED),
            publisher=RecorderPublisher(
                segment_topic="it.segment_finished",
                level_topic="it.level",
                signal_topic="it.signal",
            ),
            segment_duration=3600,
            settle_delay=0.01,
        )

    def __enter__(self):
        self.session_manager.subscribe()
        return self

    def __exit__(self, *args):
        self.session_manager.unsubscribe()
        self.controller.close()


async def wait_for_chunks(capture, count, timeout=5.0):
    deadline = time.time() + timeout
    start = capture.total_chunks
    while capture.total_chunks - start < count:
        if time.time() > deadline:
            raise AssertionError("capture produced no audio")
        await asyncio.sleep(0.01)


@pytest.fixture
def paced_pyaudio(mock_pyaudio, sample_audio_chunk):
    def read(frames, exception_on_overflow=True):
        time.sleep(0.002)
        return sample_audio_chunk
    mock_pyaudio['stream'].read.side_effect = read
    return mock_pyaudio


@pytest.mark.integration
class TestPipeline:

    def test_record_rotate_and_transcribe(self, temp_data_dir, paced_pyaudio):
        backend = ScriptedBackend(["first part", "second part"])

        with Pipeline(temp_data_dir, backend) as pipeline:
            async def scenario():
                session = pipeline.session_manager.start_session("Meeting")
                await pipeline.controller.start(session.session_id)
                # 20 chunks of 1024 frames is 1.28s of audio
                await wait_for_chunks(pipeline.capture, 20)
                pipeline.controller.rotate()
                await wait_for_chunks(pipeline.capture, 20)
                pipeline.controller.stop()
                await pipeline.controller.drain()
                await pipeline.queue.join()
                return session

            session = asyncio.run(scenario())

        assert pipeline.controller.state is RecorderState.STOPPED
        assert [s.status for s in session.segments] == [SegmentStatus.COMPLETED] * 2
        assert session.transcript == "first part\nsecond part"
        assert all(s.duration_seconds >= 1.0 for s in session.segments)
        # Transcribed audio is removed and no recovery record is left behind
        assert not any(os.path.exists(s.audio_file_path) for s in session.segments)
        assert pipeline.state_store.load() is None

        reloaded = JsonSessionRepository(FileManager(temp_data_dir)).load_session(session.session_id)
        assert [s.transcription_text for s in reloaded.segments] == ["first part", "second part"]

    def test_crash_recovery_transcribes_pending_segment(self, temp_data_dir):
        backend = ScriptedBackend(["recovered words"])

        with Pipeline(temp_data_dir, backend, capture=AudioCapture()) as pipeline:
            previous = pipeline.session_manager.start_session("Interrupted by crash")
            pipeline.session_manager.stop_session()
            pending = pipeline.file_manager.new_segment_path(previous.session_id, 3)
            write_wav(pending, 2.0)
            pipeline.state_store.save(pending, previous.session_id)

            async def scenario():
                event = await pipeline.controller.recover()
                await pipeline.queue.join()
                return event

            event = asyncio.run(scenario())

        assert event.recovered is True
        assert pipeline.state_store.load() is None
        session = pipeline.repository.load_session(previous.session_id)
        assert len(session.segments) == 1
        assert session.segments[0].transcription_text == "recovered words"

    def test_whisper_outage_escalates_to_fallback(self, temp_data_dir, wav_file):
        fallback = ScriptedFallback("fallback words")
        requests = []

        async def unavailable(request):
            requests.append(await request.post())
            return web.Response(status=503, text="Service Unavailable")

        async def scenario():
            app = web.Application()
            app.router.add_post("/v1/audio/transcriptions", unavailable)
            server = TestServer(app)
            await server.start_server()
            backend = WhisperAPIBackend("key", endpoint=str(server.make_url("/v1/audio/transcriptions")))
            try:
                with Pipeline(temp_data_dir, backend, fallback=fallback, capture=AudioCapture()) as pipeline:
                    session = pipeline.session_manager.start_session("Outage")
                    for index in range(2):
                        path = pipeline.file_manager.new_segment_path(session.session_id, index)
                        write_wav(path, 1.5)
                        pipeline.state_store.save(path, session.session_id)
                        await pipeline.controller.recover()
                    await pipeline.queue.join()
                    return session, pipeline.sleep.delays
            finally:
                await backend.close()
                await server.close()

        session, delays = asyncio.run(scenario())

        first, second = session.segments
        assert len(requests) == 6
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]
        assert first.status is SegmentStatus.FAILED
        assert first.failure_reason.endswith("Network error: Service Unavailable")
        assert os.path.exists(first.audio_file_path)
        assert second.status is SegmentStatus.COMPLETED
        assert second.transcribed_by == "fallback"
        assert second.transcription_text == "fallback words"
