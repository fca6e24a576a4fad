import base64

import numpy as np
import pytest

from relay.audio_utils import (
    array_buffer_to_base64,
    bytes_to_int16,
    float_to_16bit_pcm,
    pcm16_to_float32,
    resample_audio,
    transcode,
)
from relay.errors import MalformedAudioError

from conftest import decode_pcm, pcm


def test_empty_input_encodes_to_empty_string():
    assert transcode(b"", 16000, 24000) == ""


@pytest.mark.parametrize("length", [1, 3, 7, 321])
def test_odd_length_is_malformed(length):
    with pytest.raises(MalformedAudioError):
        transcode(b"\x01" * length, 16000, 24000)


def test_odd_length_checked_before_rates():
    with pytest.raises(MalformedAudioError):
        transcode(b"\x00\x00\x00", 0, 24000)


def test_little_endian_decode():
    samples = bytes_to_int16(b"\x01\x00\xff\xff\x00\x80\xff\x7f")
    assert samples.tolist() == [1, -1, -32768, 32767]


def test_normalization_range():
    floats = pcm16_to_float32(np.array([-32768, 0, 16384, 32767], dtype=np.int16))
    assert floats.dtype == np.float32
    assert floats[0] == -1.0
    assert floats[1] == 0.0
    assert floats[2] == 0.5
    assert floats[3] < 1.0


def test_identity_rate_round_trips_bytes():
    rng = np.random.default_rng(7)
    original = rng.integers(-32768, 32767, size=480, dtype=np.int16, endpoint=True)
    raw = original.astype("<i2").tobytes()

    decoded = np.array(decode_pcm(transcode(raw, 16000, 16000)), dtype=np.int32)

    assert np.max(np.abs(decoded - original.astype(np.int32))) <= 1


@pytest.mark.parametrize("n", [0, 1, 2, 3, 160, 321, 1000])
def test_upsample_length(n):
    out = resample_audio(np.zeros(n, dtype=np.float32), 16000, 24000)
    assert len(out) == n * 24000 // 16000


def test_identity_resample_returns_same_samples():
    samples = np.linspace(-1.0, 1.0, 50, dtype=np.float32)
    np.testing.assert_array_equal(resample_audio(samples, 24000, 24000), samples)


def test_linear_interpolation_clamps_at_end():
    out = resample_audio(np.array([0.0, 1.0], dtype=np.float32), 16000, 32000)
    np.testing.assert_allclose(out, [0.0, 0.5, 1.0, 1.0])


def test_non_positive_rate_rejected():
    with pytest.raises(ValueError):
        resample_audio(np.zeros(4, dtype=np.float32), 0, 24000)


def test_float_to_pcm_rounds_and_saturates():
    out = float_to_16bit_pcm(np.array([1.5, -1.5, 1.0, -1.0, 0.25], dtype=np.float32))
    assert out.tolist() == [32767, -32768, 32767, -32768, 8192]


def test_transcode_16k_to_24k():
    raw = pcm(*range(0, 1600, 10))  # 160 samples

    encoded = transcode(raw, 16000, 24000)

    assert encoded.isascii()
    samples = decode_pcm(encoded)
    assert len(samples) == 240
    assert samples[0] == 0
    # output sample 3 sits exactly on input sample 2
    assert samples[3] == 20


def test_array_buffer_to_base64_writes_little_endian():
    data = np.array([1, -2, 300], dtype=np.int16)
    encoded = array_buffer_to_base64(data)
    assert encoded == base64.b64encode(data.astype("<i2").tobytes()).decode()
