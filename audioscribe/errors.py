"""Exception hierarchy for AudioScribe."""


class AudioscribeError(Exception):
    """Base class for all AudioScribe errors."""


class CaptureError(AudioscribeError):
    """Capture could not be started or was lost."""


class PermissionDenied(CaptureError):
    """Microphone access is not granted."""

    def __init__(self, message: str = "Microphone permission denied"):
        super().__init__(message)


class InsufficientStorage(CaptureError):
    """Not enough free disk space to start recording."""

    def __init__(self, free_bytes: int, required_bytes: int):
        self.free_bytes = free_bytes
        self.required_bytes = required_bytes
        super().__init__(
            f"Insufficient storage: {free_bytes / (1024 * 1024):.1f} MB free, "
            f"{required_bytes / (1024 * 1024):.1f} MB required"
        )


class DeviceDisconnected(CaptureError):
    """The input device in use went away while capturing."""

    def __init__(self, message: str = "Audio input device disconnected"):
        super().__init__(message)


class DeviceError(CaptureError):
    """The audio device could not be opened or read."""


class SegmentTooShort(AudioscribeError):
    """A finished segment was below the minimum duration and was discarded."""

    def __init__(self, path: str, duration_seconds: float):
        self.path = path
        self.duration_seconds = duration_seconds
        super().__init__(f"Segment too short ({duration_seconds:.2f}s): {path}")


class TranscriptionError(AudioscribeError):
    """Primary backend failure. All subclasses are retryable."""


class RateLimited(TranscriptionError):
    def __init__(self, message: str = "Transcription quota exceeded, check API billing"):
        super().__init__(message)


class TransportError(TranscriptionError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Network error: {detail}")


class MalformedResponse(TranscriptionError):
    def __init__(self, message: str = "Could not parse transcription API response"):
        super().__init__(message)


class FallbackError(AudioscribeError):
    """Fallback recognizer failure. Always terminal for the segment."""


class FallbackUnavailable(FallbackError):
    def __init__(self, message: str = "Fallback recognizer is not available"):
        super().__init__(message)


class RecognitionFailed(FallbackError):
    pass


class InvalidSegmentTransition(AudioscribeError):
    """A segment status change violated the status state machine."""
