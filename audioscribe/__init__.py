"""AudioScribe - continuous audio capture with resilient segment transcription."""

__version__ = "0.1.0"
