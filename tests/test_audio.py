import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from studio.audio import (
    MAJOR_PROFILE,
    MINOR_PROFILE,
    AudioAnalysis,
    AudioAnalyzer,
    AudioProcessor,
    estimate_key,
)


@pytest.mark.parametrize("profile, shift, expected", [
    (MAJOR_PROFILE, 0, "C major"),
    (MAJOR_PROFILE, 7, "G major"),
    (MINOR_PROFILE, 9, "A minor"),
    (MINOR_PROFILE, 4, "E minor"),
])
def test_estimate_key_recognises_rotated_profiles(profile, shift, expected):
    assert estimate_key(np.roll(profile, shift)) == expected


def test_estimate_key_without_tonal_content():
    assert estimate_key(np.ones(12)) == ""
    assert estimate_key(np.zeros(12)) == ""
    assert estimate_key([1.0, 2.0]) == ""
    assert estimate_key([np.nan] * 12) == ""


def _fake_librosa(tempo=120.4, chroma_profile=None):
    librosa = MagicMock()
    librosa.load.return_value = (np.ones(44100), 44100)
    librosa.beat.beat_track.return_value = (np.array([tempo]), np.array([]))
    chroma = np.tile(np.asarray(chroma_profile if chroma_profile is not None else MAJOR_PROFILE)[:, None], (1, 10))
    librosa.feature.chroma_cqt.return_value = chroma
    return librosa


def test_analyze_detects_bpm_and_key():
    librosa = _fake_librosa(tempo=139.6, chroma_profile=np.roll(MINOR_PROFILE, 9))
    with patch.dict(sys.modules, {"librosa": librosa}):
        result = AudioAnalyzer().analyze("beat.wav")

    assert result == AudioAnalysis(bpm=140, key="A minor")
    librosa.load.assert_called_once_with("beat.wav", sr=44100, mono=True)


def test_analyze_falls_back_to_tempo_and_stft_chroma():
    librosa = _fake_librosa()
    librosa.beat.beat_track.side_effect = RuntimeError("no beats")
    librosa.feature.tempo.return_value = np.array([95.2])
    librosa.feature.chroma_cqt.side_effect = RuntimeError("cqt failed")
    librosa.feature.chroma_stft.return_value = np.tile(np.roll(MAJOR_PROFILE, 2)[:, None], (1, 4))

    with patch.dict(sys.modules, {"librosa": librosa}):
        result = AudioAnalyzer().analyze("beat.wav")

    assert result == AudioAnalysis(bpm=95, key="D major")


def test_analyze_returns_none_when_nothing_detected():
    librosa = _fake_librosa(tempo=0.0, chroma_profile=np.ones(12))
    librosa.feature.tempo.return_value = np.array([0.0])
    librosa.feature.chroma_stft.return_value = np.ones((12, 4))

    with patch.dict(sys.modules, {"librosa": librosa}):
        assert AudioAnalyzer().analyze("silence.wav") is None


def test_analyze_returns_none_for_unreadable_file():
    librosa = _fake_librosa()
    librosa.load.side_effect = Exception("cannot decode")
    with patch.dict(sys.modules, {"librosa": librosa}):
        assert AudioAnalyzer().analyze("broken.mp3") is None


@pytest.mark.parametrize("name, supported", [
    ("beat.mp3", True),
    ("BEAT.WAV", True),
    ("loop.flac", True),
    ("notes.txt", False),
    ("cover.png", False),
])
def test_supported_audio_formats(name, supported):
    assert AudioProcessor.is_supported_format(name) is supported


def test_supported_image_formats():
    assert AudioProcessor.is_supported_image("cover.JPG")
    assert not AudioProcessor.is_supported_image("beat.mp3")


def test_read_title_tag():
    audio = MagicMock()
    audio.tags = {"title": ["  Night Drive "]}
    with patch("studio.audio.MutagenFile", return_value=audio):
        assert AudioProcessor.read_title_tag("beat.mp3") == "Night Drive"

    with patch("studio.audio.MutagenFile", return_value=None):
        assert AudioProcessor.read_title_tag("beat.mp3") is None


def test_read_title_tag_unreadable_file(tmp_path):
    path = tmp_path / "garbage.mp3"
    path.write_bytes(b"\x00" * 16)
    assert AudioProcessor.read_title_tag(str(path)) is None
