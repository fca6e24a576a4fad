"""
Audio processing utilities for the realtime relay.

This module converts the raw PCM16 frames streamed by the device into the
format the Azure OpenAI Realtime API expects: 24 kHz PCM16, base64 encoded
for transmission inside a JSON event.
"""

import base64
import logging
from typing import Union

import numpy as np

from relay.errors import MalformedAudioError


logger = logging.getLogger(__name__)

PCM16_SCALE = 32768.0
DEVICE_SAMPLE_RATE = 16000
REALTIME_SAMPLE_RATE = 24000


def bytes_to_int16(data: bytes) -> np.ndarray:
    """
    Interpret a byte buffer as little-endian signed 16-bit samples.

    Args:
        data: Raw PCM16 bytes

    Returns:
        Samples as an int16 numpy array

    Raises:
        MalformedAudioError: If the buffer length is not a multiple of 2
    """
    if len(data) % 2 != 0:
        raise MalformedAudioError(f"PCM16 buffer length {len(data)} is not a multiple of 2")
    return np.frombuffer(data, dtype="<i2").astype(np.int16)


def pcm16_to_float32(int16_array: np.ndarray) -> np.ndarray:
    """
    Normalize int16 samples to float32 values in [-1.0, 1.0].

    Args:
        int16_array: Audio signal as int16 numpy array

    Returns:
        Audio signal as float32 numpy array
    """
    return (int16_array.astype(np.float32) / np.float32(PCM16_SCALE)).astype(np.float32)


def float_to_16bit_pcm(float32_array: np.ndarray) -> np.ndarray:
    """
    Convert a float array back to signed 16-bit PCM.

    Values are rounded to the nearest step and saturated to the int16 range.

    Args:
        float32_array: Audio signal with values nominally in [-1.0, 1.0]

    Returns:
        Converted audio signal as int16 numpy array
    """
    scaled = np.rint(np.asarray(float32_array, dtype=np.float64) * PCM16_SCALE)
    return np.clip(scaled, -32768, 32767).astype(np.int16)


def resample_audio(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """
    Resample a float signal with linear interpolation.

    The output holds floor(n * target_rate / source_rate) samples. Output
    sample i reads the fractional source position i * source_rate / target_rate
    and interpolates between the two neighbouring input samples, clamping at
    both ends. There is no anti-aliasing filter; good enough for voice.

    Args:
        samples: Float audio signal
        source_rate: Sample rate of ``samples`` in Hz
        target_rate: Desired sample rate in Hz

    Returns:
        Resampled float32 numpy array
    """
    if source_rate <= 0 or target_rate <= 0:
        raise ValueError(f"Sample rates must be positive, got {source_rate} -> {target_rate}")

    samples = np.asarray(samples, dtype=np.float32)
    if source_rate == target_rate or len(samples) == 0:
        return samples.copy()

    output_length = len(samples) * target_rate // source_rate
    positions = np.arange(output_length, dtype=np.float64) * source_rate / target_rate
    resampled = np.interp(positions, np.arange(len(samples), dtype=np.float64), samples)
    return resampled.astype(np.float32)


def array_buffer_to_base64(array_buffer: Union[np.ndarray, bytes, bytearray]) -> str:
    """
    Convert an array/bytes with audio data to base64 for the Realtime API.
    Float arrays are converted to PCM16 first; int16 arrays are written little-endian.

    Args:
        array_buffer: Audio data as numpy array, bytes, or bytearray

    Returns:
        Base64 encoded string
    """
    if isinstance(array_buffer, np.ndarray):
        if array_buffer.dtype in (np.float32, np.float64):
            array_buffer = float_to_16bit_pcm(array_buffer)

        if array_buffer.dtype == np.int16:
            array_buffer = array_buffer.astype('<i2', copy=False).tobytes()
        else:
            array_buffer = array_buffer.tobytes()

    return base64.b64encode(array_buffer).decode('utf-8')


def transcode(
    raw: bytes,
    source_rate: int = DEVICE_SAMPLE_RATE,
    target_rate: int = REALTIME_SAMPLE_RATE,
) -> str:
    """
    Turn one device frame into audio ready for ``input_audio_buffer.append``.

    PCM16 bytes -> float32 -> linear resample -> PCM16 bytes -> base64.
    Pure and free of shared state, so frames may be transcoded concurrently.

    Args:
        raw: Little-endian PCM16 bytes from the device
        source_rate: Device sample rate in Hz
        target_rate: Realtime session sample rate in Hz

    Returns:
        Base64 encoded PCM16 at ``target_rate``; empty string for empty input

    Raises:
        MalformedAudioError: If ``raw`` has an odd length
    """
    samples = bytes_to_int16(raw)
    if len(samples) == 0:
        return ""
    resampled = resample_audio(pcm16_to_float32(samples), source_rate, target_rate)
    return array_buffer_to_base64(float_to_16bit_pcm(resampled))
