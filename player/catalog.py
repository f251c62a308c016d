"""
Catalog client for the visitor-side player.
Reads beats, comments and the artist profile from the Beatfolio API.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging

import requests

from shared.constants import DEFAULT_API_URL, DEFAULT_NETWORK_TIMEOUT
from shared.models import Beat, Comment, Profile, ReactionState
from .interaction_ledger import InteractionLedger

logger = logging.getLogger(__name__)


@dataclass
class BeatRow:
    """A beat as a view should render it for this visitor."""
    beat: Beat
    reaction: ReactionState
    likes: int
    dislikes: int
    audio_url: Optional[str] = None
    cover_url: Optional[str] = None


class CatalogClient:
    """
    Thin wrapper around the read side of the API.

    HTTP and connection errors propagate as requests.RequestException.
    """

    def __init__(self, api_url: str = DEFAULT_API_URL,
                 session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_NETWORK_TIMEOUT):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._media_urls: Dict[str, Dict[str, Optional[str]]] = {}

    def _get(self, path: str) -> Any:
        response = self._session.get(f"{self.api_url}{path}", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def fetch_beats(self) -> List[Beat]:
        """Fetch every beat with its authoritative counters."""
        payload = self._get("/api/beats")
        beats = []
        for item in payload:
            beat = Beat.from_dict(item)
            self._media_urls[beat.id] = {
                "audio": item.get("audioUrl"),
                "cover": item.get("coverUrl"),
            }
            beats.append(beat)
        logger.debug(f"Fetched {len(beats)} beats from {self.api_url}")
        return beats

    def fetch_comments(self, beat_id: str) -> List[Comment]:
        payload = self._get(f"/api/beats/{quote(beat_id, safe='')}/comments")
        return [Comment.from_dict(item) for item in payload]

    def post_comment(self, beat_id: str, author: str, content: str) -> Comment:
        response = self._session.post(
            f"{self.api_url}/api/beats/{quote(beat_id, safe='')}/comments",
            json={"author": author, "content": content},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return Comment.from_dict(response.json())

    def fetch_profile(self) -> Profile:
        return Profile.from_dict(self._get("/api/profile"))

    def ledger_rows(self, beats: List[Beat], ledger: InteractionLedger) -> List[BeatRow]:
        """Combine authoritative counts with the visitor's ledger."""
        rows = []
        for beat in beats:
            likes, dislikes = ledger.display_count(beat.id, beat.like_count, beat.dislike_count)
            urls = self._media_urls.get(beat.id, {})
            rows.append(BeatRow(
                beat=beat,
                reaction=ledger.get_reaction(beat.id),
                likes=likes,
                dislikes=dislikes,
                audio_url=urls.get("audio"),
                cover_url=urls.get("cover"),
            ))
        return rows
