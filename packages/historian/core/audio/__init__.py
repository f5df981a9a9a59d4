"""Narration audio decoding."""

from historian.core.audio.decoder import (
    RAW_PCM_SAMPLE_RATE,
    AudioDecoder,
    DecodeStrategy,
    SampleBuffer,
    decode_container,
    decode_raw_pcm,
)

__all__ = [
    "RAW_PCM_SAMPLE_RATE",
    "AudioDecoder",
    "DecodeStrategy",
    "SampleBuffer",
    "decode_container",
    "decode_raw_pcm",
]
