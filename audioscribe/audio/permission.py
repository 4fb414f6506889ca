"""Microphone permission check."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

import pyaudio

logger = logging.getLogger(__name__)


class PermissionState(Enum):
    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


def probe_default_input() -> bool:
    """Return True if PyAudio can see a default input device."""
    pa = pyaudio.PyAudio()
    try:
        info = pa.get_default_input_device_info()
        logger.debug(f"Default input device: {info.get('name')}")
        return info.get('maxInputChannels', 0) > 0
    except OSError as e:
        logger.warning(f"No usable audio input device: {e}")
        return False
    finally:
        pa.terminate()


class MicrophonePermission:
    """Tracks whether capture is allowed.

    The first request() resolves an undetermined state by probing the device;
    later calls reuse the answer.
    """

    def __init__(self, probe: Optional[Callable[[], bool]] = None,
                 initial_state: PermissionState = PermissionState.UNDETERMINED):
        self._probe = probe or probe_default_input
        self._state = initial_state

    def status(self) -> PermissionState:
        return self._state

    async def request(self) -> bool:
        if self._state is PermissionState.UNDETERMINED:
            loop = asyncio.get_running_loop()
            granted = await loop.run_in_executor(None, self._probe)
            self._state = PermissionState.GRANTED if granted else PermissionState.DENIED
            logger.info(f"Microphone permission resolved: {self._state.value}")
        return self._state is PermissionState.GRANTED
