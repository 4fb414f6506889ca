"""Audio capture and processing module."""

from .capture import AudioCapture
from .encoding import SegmentEncoder
from .permission import MicrophonePermission, PermissionState
from .audio_pub import RecorderPublisher, CaptureLifecycleSource

__all__ = [
    'AudioCapture',
    'SegmentEncoder',
    'MicrophonePermission',
    'PermissionState',
    'RecorderPublisher',
    'CaptureLifecycleSource',
]
