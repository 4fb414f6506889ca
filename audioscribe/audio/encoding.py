"""Conversion of finished segments to the canonical delivery format.

Canonical format: 16 kHz, mono, 16-bit PCM WAV.
"""

import os
import wave
import asyncio
import logging
from math import gcd

import numpy as np
from scipy.io import wavfile
from scipy.signal import resample_poly

logger = logging.getLogger(__name__)

CANONICAL_SAMPLE_RATE = 16000


def read_duration(path: str) -> float:
    """Duration in seconds of a PCM WAV file."""
    with wave.open(path, 'rb') as wf:
        rate = wf.getframerate()
        return wf.getnframes() / float(rate) if rate else 0.0


def _to_int16(data: np.ndarray) -> np.ndarray:
    if data.dtype == np.int16:
        return data
    if data.dtype == np.uint8:
        return ((data.astype(np.int32) - 128) << 8).astype(np.int16)
    if data.dtype == np.int32:
        return (data >> 16).astype(np.int16)
    # float formats are in [-1.0, 1.0]
    return np.clip(data * 32767.0, -32768, 32767).astype(np.int16)


def reencode_wav(source_path: str, target_path: str,
                 sample_rate: int = CANONICAL_SAMPLE_RATE) -> str:
    """Rewrite a WAV file as mono 16-bit PCM at sample_rate."""
    rate, data = wavfile.read(source_path)

    if data.ndim > 1:
        data = data.mean(axis=1).astype(data.dtype)

    if rate != sample_rate and data.size:
        divisor = gcd(rate, sample_rate)
        resampled = resample_poly(data.astype(np.float64), sample_rate // divisor, rate // divisor)
        if data.dtype == np.int16:
            data = np.clip(resampled, -32768, 32767).astype(np.int16)
        else:
            data = resampled.astype(data.dtype)

    wavfile.write(target_path, sample_rate, _to_int16(data))
    logger.debug(f"Re-encoded {source_path} -> {target_path} ({rate}Hz -> {sample_rate}Hz)")
    return target_path


class SegmentEncoder:
    """Async wrapper running duration reads and re-encodes in the executor."""

    def __init__(self, sample_rate: int = CANONICAL_SAMPLE_RATE):
        self.sample_rate = sample_rate

    async def duration(self, path: str) -> float:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, read_duration, path)

    async def reencode(self, path: str) -> str:
        """Re-encode path into a sibling *.16k.wav file and remove the capture file."""
        root, _ = os.path.splitext(path)
        target = f"{root}.16k.wav"
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, reencode_wav, path, target, self.sample_rate)
        os.remove(path)
        return target
