"""
Reaction Sync Client.
Sends marginal like/dislike deltas to the counter store, fire-and-forget.
"""

from typing import List, Optional
import logging
import threading
import time
from urllib.parse import quote

import requests

from shared.constants import DEFAULT_API_URL, DEFAULT_NETWORK_TIMEOUT
from shared.models import ReactionCommand

logger = logging.getLogger(__name__)


class ReactionSyncClient:
    """
    PATCHes {likeDelta, dislikeDelta} to /api/beats/<id>.

    No sequencing, no retry and no rollback: each click's delta is sent on
    its own thread, failures are logged and dropped. Out-of-order arrival is
    harmless because the server applies deltas with a clamped add.
    """

    def __init__(self, api_url: str = DEFAULT_API_URL,
                 session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_NETWORK_TIMEOUT):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def beat_url(self, beat_id: str) -> str:
        return f"{self.api_url}/api/beats/{quote(beat_id, safe='')}"

    def send(self, command: ReactionCommand) -> bool:
        """
        Send one command synchronously.

        Returns:
            True if the server accepted the delta, False otherwise (logged)
        """
        try:
            response = self._session.patch(
                self.beat_url(command.beat_id),
                json=command.delta.to_payload(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.debug(f"Synced reaction for {command.beat_id}: {command.delta.to_payload()}")
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to sync interaction for {command.beat_id} to backend: {e}")
            return False

    def dispatch(self, command: ReactionCommand) -> None:
        """Send a command in the background and return immediately."""
        thread = threading.Thread(
            target=self.send,
            args=(command,),
            name=f"reaction-sync-{command.beat_id}",
            daemon=True,
        )
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def __call__(self, command: ReactionCommand) -> None:
        self.dispatch(command)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight dispatches.

        Returns:
            True if every dispatch finished within the timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            pending = list(self._threads)
        for thread in pending:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            return not self._threads
