"""
Data models for beats, comments, the artist profile and visitor reactions.

This module defines the core data structures shared by the API server,
the visitor-side player and the studio tooling. Wire (JSON) forms use
camelCase keys; Python attributes use snake_case.
"""

from dataclasses import dataclass, asdict, field, fields
from typing import Dict, Optional, Any
from enum import Enum
import uuid
from datetime import datetime, timezone

from shared.constants import DEFAULT_PSEUDO, DEFAULT_TAGLINE, MAX_REACTION_DELTA


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _pick(data: Dict[str, Any], wire_key: str, attr: str, default: Any = None) -> Any:
    """Read a value by its wire key, falling back to the attribute name."""
    if wire_key in data:
        return data[wire_key]
    return data.get(attr, default)


class StorageProvider(Enum):
    """Supported object storage backends."""
    LOCAL = "local"
    S3 = "s3"


class ReactionState(Enum):
    """A visitor's exclusive reaction to a beat."""
    NONE = None
    LIKED = "like"
    DISLIKED = "dislike"


class ReactionAction(Enum):
    """The two toggles a visitor can press."""
    LIKE = "like"
    DISLIKE = "dislike"


@dataclass(frozen=True)
class ReactionDelta:
    """
    Marginal change to the like/dislike counters produced by one click.

    Attributes:
        like_delta: Signed change to the like counter
        dislike_delta: Signed change to the dislike counter
    """
    like_delta: int = 0
    dislike_delta: int = 0

    def is_zero(self) -> bool:
        return self.like_delta == 0 and self.dislike_delta == 0

    def to_payload(self) -> Dict[str, int]:
        """Wire body for the counter store."""
        return {"likeDelta": self.like_delta, "dislikeDelta": self.dislike_delta}

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'ReactionDelta':
        """
        Parse a wire body. Missing keys count as 0.

        Raises:
            ValueError: If a delta is present but not an integer, or its
                magnitude exceeds MAX_REACTION_DELTA
        """
        values = []
        for name in ("likeDelta", "dislikeDelta"):
            value = data.get(name)
            if value is None:
                value = 0
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
            if abs(value) > MAX_REACTION_DELTA:
                raise ValueError(f"{name} must be between -{MAX_REACTION_DELTA} and {MAX_REACTION_DELTA}")
            values.append(value)
        return cls(like_delta=values[0], dislike_delta=values[1])


@dataclass(frozen=True)
class ReactionCommand:
    """Reconciliation request emitted by a ledger transition."""
    beat_id: str
    delta: ReactionDelta


@dataclass
class SessionDelta:
    """Per-beat adjustment applied locally during the current session."""
    likes: int = 0
    dislikes: int = 0


@dataclass
class Beat:
    """
    Represents a single published beat.

    Attributes:
        id: Unique identifier (UUID)
        title: Beat title
        audio_path: Object storage key of the audio file
        bpm: Tempo in beats per minute (0 when unknown)
        key: Musical key such as "A minor" (empty when unknown)
        cover_path: Object storage key of the cover art (optional)
        description: Free text shown under the player
        created_at: ISO-8601 UTC creation time
        like_count: Authoritative like total
        dislike_count: Authoritative dislike total
        for_sale: Whether visitors can ask to purchase the beat
        price: Asking price when for sale (optional)
    """
    id: str
    title: str
    audio_path: str
    bpm: int = 0
    key: str = ""
    cover_path: str = ""
    description: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    like_count: int = 0
    dislike_count: int = 0
    for_sale: bool = False
    price: Optional[float] = None

    WIRE_KEYS = {
        "id": "id",
        "title": "title",
        "audio_path": "audioPath",
        "bpm": "bpm",
        "key": "key",
        "cover_path": "coverPath",
        "description": "description",
        "created_at": "createdAt",
        "like_count": "likeCount",
        "dislike_count": "dislikeCount",
        "for_sale": "forSale",
        "price": "price",
    }

    @staticmethod
    def generate_id() -> str:
        """Generate a unique beat ID."""
        return str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert beat to its wire dictionary."""
        data = asdict(self)
        return {wire: data[attr] for attr, wire in self.WIRE_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Beat':
        """Create Beat from a wire or attribute dictionary, ignoring unknown keys."""
        values = {}
        for f in fields(cls):
            wire = cls.WIRE_KEYS[f.name]
            if wire in data or f.name in data:
                values[f.name] = _pick(data, wire, f.name)
        values['like_count'] = int(values.get('like_count') or 0)
        values['dislike_count'] = int(values.get('dislike_count') or 0)
        values['bpm'] = int(values.get('bpm') or 0)
        values['for_sale'] = bool(values.get('for_sale', False))
        return cls(**values)


@dataclass
class Comment:
    """A visitor comment left under a beat."""
    id: str
    beat_id: str
    author: str
    content: str
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "beatId": self.beat_id,
            "author": self.author,
            "content": self.content,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Comment':
        return cls(
            id=data["id"],
            beat_id=_pick(data, "beatId", "beat_id"),
            author=data.get("author", ""),
            content=data.get("content", ""),
            created_at=_pick(data, "createdAt", "created_at") or utc_now_iso(),
        )


@dataclass
class Socials:
    instagram: Optional[str] = None
    twitter: Optional[str] = None
    youtube: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Socials':
        data = data or {}
        return cls(**{f.name: data.get(f.name) for f in fields(cls)})


@dataclass
class Profile:
    """
    The artist's public profile and page appearance.

    Image attributes hold object storage keys; empty means "not set".
    """
    pseudo: str = DEFAULT_PSEUDO
    tagline: str = DEFAULT_TAGLINE
    profile_picture: str = ""
    banner: str = ""
    background_image: str = ""
    background_blur: Optional[int] = None
    socials: Socials = field(default_factory=Socials)

    IMAGE_SLOTS = {
        "profilePicture": "profile_picture",
        "banner": "banner",
        "backgroundImage": "background_image",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pseudo": self.pseudo,
            "tagline": self.tagline,
            "profilePicture": self.profile_picture,
            "banner": self.banner,
            "backgroundImage": self.background_image,
            "backgroundBlur": self.background_blur,
            "socials": self.socials.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        blur = _pick(data, "backgroundBlur", "background_blur")
        return cls(
            pseudo=data.get("pseudo") or DEFAULT_PSEUDO,
            tagline=data.get("tagline") or DEFAULT_TAGLINE,
            profile_picture=_pick(data, "profilePicture", "profile_picture") or "",
            banner=data.get("banner") or "",
            background_image=_pick(data, "backgroundImage", "background_image") or "",
            background_blur=int(blur) if blur is not None else None,
            socials=Socials.from_dict(data.get("socials")),
        )
