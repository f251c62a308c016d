"""
Audio file processing utilities.

This module handles format checks, tag reading and tempo/key detection
for uploaded beats.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
import logging

import numpy as np
from mutagen import File as MutagenFile
from mutagen import MutagenError

from shared.constants import SUPPORTED_AUDIO_FORMATS, SUPPORTED_IMAGE_FORMATS, ANALYSIS_SAMPLE_RATE

logger = logging.getLogger(__name__)

PITCH_CLASSES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Krumhansl-Kessler key profiles, tonic first
MAJOR_PROFILE = np.array([6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88])
MINOR_PROFILE = np.array([6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17])


@dataclass
class AudioAnalysis:
    """Detected musical properties of a track."""
    bpm: int = 0
    key: str = ""


def estimate_key(chroma_mean: Sequence[float]) -> str:
    """
    Pick the key whose rotated profile correlates best with a chroma vector.

    Args:
        chroma_mean: 12 average pitch-class energies, C first

    Returns:
        Key string like "A minor", or "" when the chroma carries no tonal
        information
    """
    chroma = np.asarray(chroma_mean, dtype=float)
    if chroma.shape != (12,) or not np.all(np.isfinite(chroma)) or np.ptp(chroma) == 0:
        return ""

    best_score = -np.inf
    best_key = ""
    for tonic in range(12):
        for mode, profile in (("major", MAJOR_PROFILE), ("minor", MINOR_PROFILE)):
            score = np.corrcoef(chroma, np.roll(profile, tonic))[0, 1]
            if score > best_score:
                best_score = score
                best_key = f"{PITCH_CLASSES[tonic]} {mode}"
    return best_key


class AudioAnalyzer:
    """
    Tempo and key detection with librosa.

    librosa is imported on first use; it pulls in numba and takes a while to
    load, which the API and CLIs should not pay for at import time.
    """

    def __init__(self, sample_rate: int = ANALYSIS_SAMPLE_RATE):
        self.sample_rate = sample_rate

    def analyze(self, file_path: str) -> Optional[AudioAnalysis]:
        """
        Detect BPM and key.

        Returns:
            AudioAnalysis, or None if the file can't be read or neither
            property could be detected
        """
        import librosa

        try:
            y, sr = librosa.load(file_path, sr=self.sample_rate, mono=True)
        except Exception as e:
            logger.error(f"Audio analysis failed to load {file_path}: {e}")
            return None

        if y.size == 0:
            logger.warning(f"No audio samples in {file_path}")
            return None

        bpm = self._detect_bpm(librosa, y, sr)
        key = self._detect_key(librosa, y, sr)

        if bpm == 0 and not key:
            logger.warning(f"Could not detect BPM or key for {file_path}")
            return None

        logger.info(f"Analyzed {Path(file_path).name}: {bpm} BPM, {key or 'unknown key'}")
        return AudioAnalysis(bpm=bpm, key=key)

    def _detect_bpm(self, librosa, y, sr) -> int:
        try:
            tempo, _ = librosa.beat.beat_track(y=y, sr=sr)
            bpm = float(np.atleast_1d(tempo)[0])
            if bpm > 0:
                return int(round(bpm))
        except Exception as e:
            logger.debug(f"beat_track failed: {e}")

        # Fallback: onset-envelope tempo estimate
        try:
            onset_env = librosa.onset.onset_strength(y=y, sr=sr)
            tempo = librosa.feature.tempo(onset_envelope=onset_env, sr=sr)
            return max(0, int(round(float(np.atleast_1d(tempo)[0]))))
        except Exception as e:
            logger.warning(f"Tempo estimation failed: {e}")
            return 0

    def _detect_key(self, librosa, y, sr) -> str:
        try:
            chroma = librosa.feature.chroma_cqt(y=y, sr=sr)
            key = estimate_key(np.mean(chroma, axis=1))
            if key:
                return key
        except Exception as e:
            logger.debug(f"chroma_cqt failed: {e}")

        try:
            chroma = librosa.feature.chroma_stft(y=y, sr=sr)
            return estimate_key(np.mean(chroma, axis=1))
        except Exception as e:
            logger.warning(f"Key estimation failed: {e}")
            return ""


class AudioProcessor:
    """Handler for audio file operations."""

    @staticmethod
    def is_supported_format(file_path: str) -> bool:
        """
        Check if file format is supported.

        Args:
            file_path: Path or filename of an audio file

        Returns:
            True if format is supported
        """
        ext = Path(file_path).suffix.lower()
        return ext in SUPPORTED_AUDIO_FORMATS

    @staticmethod
    def is_supported_image(file_path: str) -> bool:
        return Path(file_path).suffix.lower() in SUPPORTED_IMAGE_FORMATS

    @staticmethod
    def read_title_tag(file_path: str) -> Optional[str]:
        """
        Title tag of an audio file, if it has one.

        Args:
            file_path: Path to audio file

        Returns:
            The title, or None when the file has no readable title tag
        """
        try:
            audio = MutagenFile(file_path, easy=True)
        except (MutagenError, OSError) as e:
            logger.warning(f"Could not read tags from {file_path}: {e}")
            return None

        if audio is None or not audio.tags:
            return None

        titles = audio.tags.get('title')
        if titles:
            title = str(titles[0]).strip()
            return title or None
        return None
