import base64

import numpy as np

from proctor_engine.audio import LatestAudioLevel, audio_level_from_pcm, decode_pcm16


def _noise(amplitude, n=2048, seed=3):
    rng = np.random.default_rng(seed)
    return rng.uniform(-amplitude, amplitude, n)


def test_silence_is_zero():
    assert audio_level_from_pcm(np.zeros(2048)) == 0.0
    assert audio_level_from_pcm(np.array([])) == 0.0


def test_loud_noise_exceeds_default_threshold():
    assert audio_level_from_pcm(_noise(0.5)) > 25


def test_level_grows_with_amplitude():
    quiet = audio_level_from_pcm(_noise(0.001))
    loud = audio_level_from_pcm(_noise(0.5))
    assert 0 <= quiet < loud <= 255


def test_int16_input_is_normalized():
    floats = _noise(0.5)
    ints = (floats * 32767).astype(np.int16)
    assert abs(audio_level_from_pcm(ints) - audio_level_from_pcm(floats)) < 2


def test_short_blocks_are_padded():
    assert audio_level_from_pcm(_noise(0.5, n=512)) > 0


def test_decode_pcm16():
    samples = np.array([0, 1000, -1000, 32767], dtype="<i2")
    encoded = base64.b64encode(samples.tobytes()).decode()
    assert decode_pcm16(encoded).tolist() == [0, 1000, -1000, 32767]
    assert decode_pcm16("!!not base64!!") is None
    assert decode_pcm16(base64.b64encode(b"\x01").decode()) is None


def test_latest_level_is_consumed_on_read():
    audio = LatestAudioLevel()
    assert audio.sample() is None
    audio.push_level(30)
    assert audio.sample() == 30.0
    assert audio.sample() is None
    level = audio.push_pcm(_noise(0.5))
    assert audio.sample() == level
