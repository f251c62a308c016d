"""
Publishing engine: puts beats and profile images into object storage and
keeps the database rows pointing at them.
"""

import os
import re
import shutil
import tempfile
import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, List, Optional

from shared.constants import AUDIO_PREFIX, COVER_PREFIX, PROFILE_PREFIX
from shared.database import DatabaseManager
from shared.models import Beat, Profile
from .audio import AudioAnalyzer, AudioProcessor
from .storage_provider import ObjectStorageProvider, guess_content_type

logger = logging.getLogger(__name__)

SOCIAL_FIELDS = ("instagram", "twitter", "youtube", "email")


class PublishError(ValueError):
    """Invalid input or a storage failure while publishing."""


@dataclass
class MediaFile:
    """An uploaded file: its client-side name and a readable binary stream."""
    filename: str
    stream: BinaryIO
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> 'MediaFile':
        """Open a file from disk. The caller closes ``stream``."""
        return cls(filename=Path(path).name, stream=open(path, 'rb'))


def sanitize_filename(filename: str) -> str:
    """
    Storage-safe version of a filename.

    Every character of the stem outside [A-Za-z0-9-] becomes '-', the
    extension is kept lowercased.
    """
    path = Path(filename or "")
    stem = re.sub(r'[^a-zA-Z0-9-]', '-', path.stem) or "file"
    return f"{stem}{path.suffix.lower()}"


def make_storage_key(prefix: str, filename: str) -> str:
    """Timestamped key such as 'audio/1718000000000-my-beat.mp3'."""
    return f"{prefix}/{int(time.time() * 1000)}-{sanitize_filename(filename)}"


def scan_directory(path: str) -> List[Path]:
    """Recursively collect supported audio files under a path."""
    path_obj = Path(path).expanduser().resolve()

    if not path_obj.exists():
        return []

    if path_obj.is_file():
        return [path_obj] if AudioProcessor.is_supported_format(str(path_obj)) else []

    files = []
    for root, _, filenames in os.walk(str(path_obj)):
        for filename in sorted(filenames):
            file_path = Path(root) / filename
            if AudioProcessor.is_supported_format(str(file_path)):
                files.append(file_path)
    return files


def _text(fields: Dict[str, Any], name: str) -> str:
    value = fields.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PublishError(f"{name} must be a string")
    return value.strip()


def _parse_bpm(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        bpm = int(round(float(value)))
    except (TypeError, ValueError):
        raise PublishError(f"Invalid BPM: {value!r}")
    if bpm < 0:
        raise PublishError("BPM cannot be negative")
    return bpm


def _parse_price(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise PublishError(f"Invalid price: {value!r}")
    if price < 0:
        raise PublishError("Price cannot be negative")
    return price


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class BeatPublisher:
    """
    Publishes, edits and removes beats.

    Media goes to the storage provider first, the row is written last; if
    anything fails after an object was stored, the stored objects are
    removed again so the bucket doesn't collect orphans.
    """

    def __init__(self, db: DatabaseManager, storage: ObjectStorageProvider,
                 analyzer: Optional[AudioAnalyzer] = None):
        self.db = db
        self.storage = storage
        self.analyzer = analyzer

    def publish(self, audio: MediaFile, title: str, cover: Optional[MediaFile] = None,
                bpm: Any = None, key: Optional[str] = None, description: str = "",
                for_sale: bool = False, price: Any = None, analyze: bool = True) -> Beat:
        """
        Store a new beat.

        BPM and key that are not supplied are detected from the audio when
        ``analyze`` is set and an analyzer is available.

        Raises:
            PublishError: On invalid input or when media can't be stored
        """
        title = (title or "").strip()
        if not title:
            raise PublishError("Title is required")
        if audio is None or not audio.filename:
            raise PublishError("Audio file is required")
        if not AudioProcessor.is_supported_format(audio.filename):
            raise PublishError(f"Unsupported audio format: {Path(audio.filename).suffix or audio.filename}")
        if cover is not None and not AudioProcessor.is_supported_image(cover.filename):
            raise PublishError(f"Unsupported image format: {Path(cover.filename).suffix or cover.filename}")

        parsed_bpm = _parse_bpm(bpm)
        key = (key or "").strip()
        parsed_price = _parse_price(price)

        stored: List[str] = []
        with tempfile.TemporaryDirectory(prefix="beatfolio-") as tmp_dir:
            local_audio = Path(tmp_dir) / sanitize_filename(audio.filename)
            with open(local_audio, 'wb') as out:
                shutil.copyfileobj(audio.stream, out)

            if analyze and self.analyzer and (parsed_bpm is None or not key):
                analysis = self.analyzer.analyze(str(local_audio))
                if analysis:
                    if parsed_bpm is None:
                        parsed_bpm = analysis.bpm
                    if not key:
                        key = analysis.key

            try:
                audio_key = self._new_key(AUDIO_PREFIX, audio.filename)
                self._store_path(local_audio, audio_key, audio.content_type)
                stored.append(audio_key)

                cover_key = ""
                if cover is not None:
                    cover_key = self._new_key(COVER_PREFIX, cover.filename)
                    self._store(cover, cover_key)
                    stored.append(cover_key)

                beat = Beat(
                    id=Beat.generate_id(),
                    title=title,
                    audio_path=audio_key,
                    cover_path=cover_key,
                    bpm=parsed_bpm or 0,
                    key=key,
                    description=(description or "").strip(),
                    for_sale=parse_bool(for_sale),
                    price=parsed_price,
                )
                self.db.add_beat(beat)
            except Exception:
                self._discard(stored)
                raise

        logger.info(f"Published beat '{beat.title}' ({beat.id})")
        return beat

    def update_metadata(self, beat_id: str, fields: Dict[str, Any],
                        cover: Optional[MediaFile] = None) -> Optional[Beat]:
        """
        Edit a beat's metadata, optionally replacing its cover.

        Args:
            beat_id: Beat to edit
            fields: Any of title, bpm, key, description, for_sale, price
            cover: New cover art; the previous one is deleted from storage

        Returns:
            The updated beat, or None if it does not exist
        """
        existing = self.db.get_beat(beat_id)
        if existing is None:
            return None

        updates: Dict[str, Any] = {}
        if "title" in fields:
            title = _text(fields, "title")
            if not title:
                raise PublishError("Title cannot be empty")
            updates["title"] = title
        if "bpm" in fields:
            updates["bpm"] = _parse_bpm(fields["bpm"]) or 0
        if "key" in fields:
            updates["key"] = _text(fields, "key")
        if "description" in fields:
            updates["description"] = _text(fields, "description")
        if "for_sale" in fields:
            updates["for_sale"] = parse_bool(fields["for_sale"])
        if "price" in fields:
            updates["price"] = _parse_price(fields["price"])

        if cover is not None and not AudioProcessor.is_supported_image(cover.filename):
            raise PublishError(f"Unsupported image format: {cover.filename}")

        stored: List[str] = []
        try:
            if cover is not None:
                cover_key = self._new_key(COVER_PREFIX, cover.filename)
                self._store(cover, cover_key)
                stored.append(cover_key)
                updates["cover_path"] = cover_key
            beat = self.db.update_beat(beat_id, updates)
        except Exception:
            self._discard(stored)
            raise

        if beat is None:
            self._discard(stored)
            return None

        if cover is not None and existing.cover_path:
            self._discard([existing.cover_path])
        return beat

    def remove(self, beat_id: str) -> Optional[Beat]:
        """Delete a beat row, its comments and its media."""
        beat = self.db.delete_beat(beat_id)
        if beat is None:
            return None
        self._discard([beat.audio_path, beat.cover_path])
        logger.info(f"Removed beat '{beat.title}' ({beat.id})")
        return beat

    def update_profile(self, fields: Dict[str, Any],
                       images: Optional[Dict[str, MediaFile]] = None,
                       deletions: Iterable[str] = ()) -> Profile:
        """
        Update the artist profile.

        Args:
            fields: pseudo, tagline, backgroundBlur and social links; missing
                    keys keep their stored value, empty socials are cleared
            images: New images keyed by slot (profilePicture, banner,
                    backgroundImage); replaced images are deleted from storage
            deletions: Slots to clear; their images are deleted from storage
        """
        images = images or {}
        profile = self.db.get_profile()

        for slot in list(images) + list(deletions):
            if slot not in Profile.IMAGE_SLOTS:
                raise PublishError(f"Unknown image slot: {slot}")
        for slot, media in images.items():
            if not AudioProcessor.is_supported_image(media.filename):
                raise PublishError(f"Unsupported image format: {media.filename}")

        if "pseudo" in fields:
            profile.pseudo = (fields["pseudo"] or "").strip() or profile.pseudo
        if "tagline" in fields:
            profile.tagline = (fields["tagline"] or "").strip() or profile.tagline
        if "backgroundBlur" in fields:
            blur = fields["backgroundBlur"]
            if blur in (None, ""):
                profile.background_blur = None
            else:
                try:
                    profile.background_blur = max(0, int(blur))
                except (TypeError, ValueError):
                    raise PublishError(f"Invalid background blur: {blur!r}")

        socials = profile.socials
        for name in SOCIAL_FIELDS:
            if name in fields:
                setattr(socials, name, (fields[name] or "").strip() or None)

        obsolete: List[str] = []
        stored: List[str] = []
        try:
            for slot in deletions:
                attr = Profile.IMAGE_SLOTS[slot]
                if getattr(profile, attr):
                    obsolete.append(getattr(profile, attr))
                setattr(profile, attr, "")

            for slot, media in images.items():
                attr = Profile.IMAGE_SLOTS[slot]
                new_key = self._new_key(PROFILE_PREFIX, f"{slot}{Path(media.filename).suffix}")
                self._store(media, new_key)
                stored.append(new_key)
                if getattr(profile, attr):
                    obsolete.append(getattr(profile, attr))
                setattr(profile, attr, new_key)

            self.db.update_profile(profile)
        except Exception:
            self._discard(stored)
            raise

        self._discard(obsolete)
        return profile

    def _new_key(self, prefix: str, filename: str) -> str:
        remote_key = make_storage_key(prefix, filename)
        base, ext = os.path.splitext(remote_key)
        n = 1
        # Same name within the same millisecond
        while self.storage.file_exists(remote_key):
            remote_key = f"{base}-{n}{ext}"
            n += 1
        return remote_key

    def _store(self, media: MediaFile, remote_key: str):
        content_type = media.content_type or guess_content_type(media.filename)
        if not self.storage.upload_fileobj(media.stream, remote_key, content_type):
            raise PublishError(f"Failed to store {media.filename}")

    def _store_path(self, path: Path, remote_key: str, content_type: Optional[str]):
        if not self.storage.upload_file(str(path), remote_key, content_type or guess_content_type(path.name)):
            raise PublishError(f"Failed to store {path.name}")

    def _discard(self, keys: Iterable[str]):
        for remote_key in keys:
            if remote_key and not self.storage.delete_file(remote_key):
                logger.warning(f"Could not delete {remote_key} from storage")
