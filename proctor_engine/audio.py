"""
Audio loudness estimation.

Produces the same 0-255 "average frequency-bin energy" scale a browser
AnalyserNode reports through getByteFrequencyData, so the default
threshold of 25 keeps its meaning for server-side PCM input.
"""

import base64
from typing import Optional

import numpy as np

DEFAULT_FFT_SIZE = 2048
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def audio_level_from_pcm(samples: np.ndarray, fft_size: int = DEFAULT_FFT_SIZE) -> float:
    """
    Mean byte-scaled magnitude over fft_size // 2 bins.

    ``samples`` are floats in [-1, 1] or int16 PCM; only the most recent
    ``fft_size`` samples are used and shorter blocks are zero-padded.
    """
    data = np.asarray(samples)
    if data.size == 0:
        return 0.0
    if data.dtype == np.int16:
        data = data.astype(np.float64) / 32768.0
    else:
        data = data.astype(np.float64)
    if data.ndim > 1:
        data = data.mean(axis=1)

    block = np.zeros(fft_size, dtype=np.float64)
    tail = data[-fft_size:]
    block[: tail.size] = tail

    windowed = block * np.blackman(fft_size)
    spectrum = np.abs(np.fft.rfft(windowed))[: fft_size // 2] / fft_size

    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(spectrum)
    scaled = 255.0 * (db - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS)
    byte_bins = np.clip(np.nan_to_num(scaled, neginf=0.0), 0.0, 255.0).astype(np.uint8)
    return float(byte_bins.mean())


def decode_pcm16(b64_data: str) -> Optional[np.ndarray]:
    """base64 little-endian int16 PCM -> ndarray, None if undecodable"""
    try:
        raw = base64.b64decode(b64_data)
    except (ValueError, TypeError):
        return None
    if len(raw) < 2:
        return None
    return np.frombuffer(raw[: len(raw) - len(raw) % 2], dtype="<i2")


class LatestAudioLevel:
    """
    Holds the most recent loudness reading pushed by a client.

    ``sample()`` consumes the reading, so a silent or disconnected feed
    yields None instead of replaying a stale level.
    """

    def __init__(self, fft_size: int = DEFAULT_FFT_SIZE):
        self.fft_size = fft_size
        self._level: Optional[float] = None

    def push_level(self, level: float) -> None:
        self._level = float(level)

    def push_pcm(self, samples: np.ndarray) -> float:
        level = audio_level_from_pcm(samples, self.fft_size)
        self._level = level
        return level

    def sample(self) -> Optional[float]:
        level, self._level = self._level, None
        return level
