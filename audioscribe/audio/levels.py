"""Signal level computation for capture buffers."""

import numpy as np

SILENCE_DB = -160.0


def rms_db(audio_chunk: bytes, sample_width: int = 2) -> float:
    """Root-mean-square level of a PCM buffer in dBFS.

    Args:
        audio_chunk: Raw little-endian signed PCM samples
        sample_width: Bytes per sample (2 for 16-bit)

    Returns:
        Level in dBFS, SILENCE_DB for empty or silent buffers
    """
    if not audio_chunk:
        return SILENCE_DB

    dtype = {1: np.int8, 2: np.int16, 4: np.int32}[sample_width]
    usable = len(audio_chunk) - (len(audio_chunk) % sample_width)
    samples = np.frombuffer(audio_chunk[:usable], dtype=dtype).astype(np.float64)
    if samples.size == 0:
        return SILENCE_DB

    samples /= float(np.iinfo(dtype).max)
    rms = float(np.sqrt(np.mean(samples * samples)))
    if rms <= 0.0:
        return SILENCE_DB
    return max(SILENCE_DB, 20.0 * np.log10(rms))
