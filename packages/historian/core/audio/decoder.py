"""Narration audio decoding.

Narration arrives base64 encoded and may be either a self-describing
container (wav, mp3, ...) or headerless 16-bit PCM. Container decoding is
tried first; raw PCM is the fallback.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
import io
import logging

import librosa
import numpy as np

from historian.core.errors import AudioDecodeError

logger = logging.getLogger(__name__)

RAW_PCM_SAMPLE_RATE = 24000
RAW_PCM_CHANNELS = 1
PCM16_SCALE = 32768.0


class DecodeStrategy(str, Enum):
    CONTAINER = "container"
    RAW_PCM = "raw_pcm"


@dataclass(frozen=True)
class SampleBuffer:
    """Decoded audio, float32 samples shaped ``(channels, frames)``."""

    sample_rate: int
    samples: np.ndarray

    @property
    def num_channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def num_frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_s(self) -> float:
        return self.num_frames / self.sample_rate if self.sample_rate else 0.0


def decode_container(data: bytes) -> SampleBuffer:
    """Decode a self-describing audio container at its native rate.

    Raises:
        Exception: Whatever the underlying decoder raises for unknown formats
    """
    y, sr = librosa.load(io.BytesIO(data), sr=None, mono=False)
    samples = np.atleast_2d(np.asarray(y, dtype=np.float32))
    if samples.shape[1] == 0:
        raise ValueError("Container decoded to zero frames")
    return SampleBuffer(sample_rate=int(sr), samples=samples)


def decode_raw_pcm(data: bytes, sample_rate: int = RAW_PCM_SAMPLE_RATE) -> SampleBuffer:
    """Interpret bytes as little-endian signed 16-bit mono PCM.

    A trailing odd byte is ignored. Samples are scaled by 1/32768.

    Raises:
        ValueError: If there is not a single complete sample
    """
    usable = len(data) - (len(data) % 2)
    if usable == 0:
        raise ValueError("Raw PCM payload contains no complete samples")
    pcm = np.frombuffer(data[:usable], dtype="<i2")
    samples = (pcm.astype(np.float32) / PCM16_SCALE).reshape(RAW_PCM_CHANNELS, -1)
    return SampleBuffer(sample_rate=sample_rate, samples=samples)


class AudioDecoder:
    """Decode base64 narration into a playable sample buffer."""

    def __init__(self, raw_sample_rate: int = RAW_PCM_SAMPLE_RATE) -> None:
        self.raw_sample_rate = raw_sample_rate

    def decode(
        self, payload_b64: str, strategy_hint: DecodeStrategy | None = None
    ) -> SampleBuffer:
        """Decode a base64 payload.

        Args:
            payload_b64: Base64-encoded audio bytes
            strategy_hint: Strategy to try first (container by default)

        Returns:
            Decoded SampleBuffer

        Raises:
            AudioDecodeError: If the payload is not valid base64 or no strategy succeeds
        """
        try:
            data = base64.b64decode(payload_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AudioDecodeError(f"Narration payload is not valid base64: {e}", [e]) from e

        order = [DecodeStrategy.CONTAINER, DecodeStrategy.RAW_PCM]
        if strategy_hint is DecodeStrategy.RAW_PCM:
            order.reverse()

        causes: list[BaseException] = []
        for strategy in order:
            try:
                if strategy is DecodeStrategy.CONTAINER:
                    return decode_container(data)
                return decode_raw_pcm(data, self.raw_sample_rate)
            except Exception as e:
                logger.debug(f"{strategy.value} decode failed ({len(data)} bytes): {e}")
                causes.append(e)

        raise AudioDecodeError(
            f"Could not decode narration audio ({len(data)} bytes): "
            + "; ".join(str(c) for c in causes),
            causes,
        )
