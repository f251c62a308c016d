"""
Persistent store for the visitor's own reactions.
Keeps {beat_id: "like" | "dislike"} in a JSON file under a fixed namespace key.
"""

from pathlib import Path
from typing import Dict, Optional, Union
import json
import logging

from shared.config import default_client_state_path
from shared.constants import INTERACTIONS_STORAGE_KEY
from shared.models import ReactionState

logger = logging.getLogger(__name__)


class ReactionStore:
    """
    JSON file persistence for the reaction map.

    The file may hold other namespaces; only INTERACTIONS_STORAGE_KEY is
    owned by this store. Items without a reaction are never written.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None,
                 namespace: str = INTERACTIONS_STORAGE_KEY):
        self._path = Path(path).expanduser() if path else default_client_state_path()
        self._namespace = namespace

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, ReactionState]:
        """
        Load the reaction map.

        Missing or corrupt storage means "no prior interactions": an empty
        map is returned and the problem is logged.
        """
        document = self._read_document()
        if document is None:
            return {}

        raw = document.get(self._namespace, {})
        if not isinstance(raw, dict):
            logger.warning(f"Invalid reactions record in {self._path}, starting fresh")
            return {}

        reactions: Dict[str, ReactionState] = {}
        for beat_id, value in raw.items():
            try:
                state = ReactionState(value)
            except ValueError:
                logger.warning(f"Dropping unknown reaction {value!r} for {beat_id}")
                continue
            if state is not ReactionState.NONE:
                reactions[str(beat_id)] = state
        logger.debug(f"Loaded {len(reactions)} reactions from {self._path}")
        return reactions

    def save(self, reactions: Dict[str, ReactionState]) -> None:
        """Persist the reaction map. Failures are logged, not raised."""
        document = self._read_document() or {}
        document[self._namespace] = {
            beat_id: state.value
            for beat_id, state in reactions.items()
            if state is not ReactionState.NONE
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
            tmp_path.replace(self._path)
        except OSError as e:
            logger.error(f"Error saving reactions to {self._path}: {e}")

    def _read_document(self) -> Optional[dict]:
        if not self._path.exists():
            return None
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Error decoding {self._path}: {e}, starting fresh")
            return None
        except OSError as e:
            logger.warning(f"Error reading {self._path}: {e}, starting fresh")
            return None
        if not isinstance(document, dict):
            logger.warning(f"Invalid client state format in {self._path}, starting fresh")
            return None
        return document
